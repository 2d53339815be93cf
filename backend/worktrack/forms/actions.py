"""
WorkTrack - Form Actions

Every transition of a form session is one of these. The discriminated union
doubles as the JSON body of the session actions endpoint.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from worktrack.models.evidence import CapturedEvidence


class SetField(BaseModel):
    type: Literal["set_field"] = "set_field"
    field: str
    value: Any = None


class SetGate(BaseModel):
    type: Literal["set_gate"] = "set_gate"
    field: str
    value: bool


class AppendEvidence(BaseModel):
    type: Literal["append_evidence"] = "append_evidence"
    field: str
    evidence: CapturedEvidence


class RemoveEvidence(BaseModel):
    type: Literal["remove_evidence"] = "remove_evidence"
    field: str
    index: int


class AddRow(BaseModel):
    type: Literal["add_row"] = "add_row"
    field: str
    defaults: Optional[dict[str, Any]] = None  # None -> the schema's default row


class RemoveRow(BaseModel):
    type: Literal["remove_row"] = "remove_row"
    field: str
    index: int


class UpdateRow(BaseModel):
    type: Literal["update_row"] = "update_row"
    field: str
    index: int
    patch: dict[str, Any]


class Validate(BaseModel):
    """Reveal every visible field's errors (the user pressed submit)."""
    type: Literal["validate"] = "validate"


class SubmitStarted(BaseModel):
    type: Literal["submit_started"] = "submit_started"


class SubmitSucceeded(BaseModel):
    type: Literal["submit_succeeded"] = "submit_succeeded"
    document_id: str


class SubmitFailed(BaseModel):
    type: Literal["submit_failed"] = "submit_failed"
    reason: str
    rejected: bool = False  # validation rejection rather than storage failure


class Reset(BaseModel):
    type: Literal["reset"] = "reset"


FormAction = Annotated[
    Union[
        SetField,
        SetGate,
        AppendEvidence,
        RemoveEvidence,
        AddRow,
        RemoveRow,
        UpdateRow,
        Validate,
        SubmitStarted,
        SubmitSucceeded,
        SubmitFailed,
        Reset,
    ],
    Field(discriminator="type"),
]

# What a client may dispatch directly. Evidence only arrives through a
# capture session; submission lifecycle belongs to the pipeline.
ClientAction = Annotated[
    Union[
        SetField,
        SetGate,
        RemoveEvidence,
        AddRow,
        RemoveRow,
        UpdateRow,
        Validate,
        Reset,
    ],
    Field(discriminator="type"),
]
