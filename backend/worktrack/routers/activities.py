"""Activity catalog: what the activity selector offers and each form's schema."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from worktrack.core.firebase_auth import FirebaseUser, get_current_user
from worktrack.dependencies import get_schema_registry
from worktrack.forms.schema import SchemaRegistry

router = APIRouter(prefix="/activities", tags=["activities"])


class ActivitySummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    description: str
    activity_type: str


@router.get("", response_model=list[ActivitySummary], response_model_by_alias=True)
async def list_activities(
    registry: SchemaRegistry = Depends(get_schema_registry),
    current_user: FirebaseUser = Depends(get_current_user),
):
    return [
        ActivitySummary(
            id=schema.activity_id,
            title=schema.title,
            description=schema.description,
            activity_type=schema.activity_type,
        )
        for schema in registry.all()
    ]


@router.get("/{activity}")
async def get_activity(
    activity: str,
    registry: SchemaRegistry = Depends(get_schema_registry),
    current_user: FirebaseUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Full field schema for one activity form."""
    return registry.get(activity).describe()
