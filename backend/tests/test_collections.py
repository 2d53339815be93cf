"""Evidence collection and repeatable sub-record list invariants."""

import random

import pytest

from tests.conftest import make_evidence
from worktrack.core.errors import IndexOutOfRange
from worktrack.forms.collections import EvidenceCollection, SubRecordList


class TestEvidenceCollection:
    """append / remove_at / validate_required."""

    def test_length_tracks_appends_minus_removals(self):
        """For any op sequence: len == appends - successful removals."""
        rng = random.Random(7)
        collection = EvidenceCollection(field="sitePhotos")
        appends = removals = 0
        for _ in range(200):
            if rng.random() < 0.55:
                collection = collection.append(make_evidence())
                appends += 1
            else:
                index = rng.randint(-1, len(collection))
                try:
                    collection = collection.remove_at(index)
                    removals += 1
                except IndexOutOfRange:
                    pass
            assert len(collection) == appends - removals
            assert collection.validate_required(True) == (len(collection) > 0)
            assert collection.validate_required(False)

    def test_duplicates_allowed(self):
        evidence = make_evidence()
        collection = EvidenceCollection(field="p").append(evidence).append(make_evidence())
        assert len(collection) == 2
        assert collection.items[0].evidence_id != collection.items[1].evidence_id

    def test_remove_preserves_order(self):
        first, second, third = make_evidence(), make_evidence(), make_evidence()
        collection = EvidenceCollection(field="p").append(first).append(second).append(third)
        collection = collection.remove_at(1)
        assert [e.evidence_id for e in collection.items] == [first.evidence_id, third.evidence_id]

    @pytest.mark.parametrize("index", [-1, 0, 3])
    def test_out_of_range_raises(self, index):
        collection = EvidenceCollection(field="p")
        if index == 3:
            collection = collection.append(make_evidence()).append(make_evidence()).append(make_evidence())
        with pytest.raises(IndexOutOfRange) as exc:
            collection.remove_at(index)
        assert exc.value.field == "p"
        assert isinstance(exc.value, IndexError)

    def test_single_photo_keeps_newest(self):
        old, new = make_evidence(), make_evidence()
        collection = EvidenceCollection(field="photoData", max_items=1).append(old).append(new)
        assert [e.evidence_id for e in collection.items] == [new.evidence_id]

    def test_operations_do_not_mutate(self):
        empty = EvidenceCollection(field="p")
        empty.append(make_evidence())
        assert len(empty) == 0

    def test_document_shape(self):
        doc = EvidenceCollection(field="p").append(make_evidence()).to_document()[0]
        assert set(doc) == {"evidenceId", "capturedAt", "imageData"}
        assert doc["evidenceId"].startswith("photo_")


class TestSubRecordList:
    """add_row / remove_row / update_row / validate_all."""

    def _readings(self, rows=1):
        return SubRecordList(
            field="readings",
            rows=tuple({"fiberNo": "1", "loss": 0} for _ in range(rows)),
            min_rows=1,
        )

    def test_row_floor_rejects_removing_sole_row(self):
        """List with one row, remove_row(0): still one row."""
        readings = self._readings()
        after = readings.remove_row(0)
        assert len(after) == 1
        assert after is readings

    def test_remove_above_floor(self):
        readings = self._readings().add_row({"fiberNo": "2", "loss": 1.5})
        after = readings.remove_row(0)
        assert after.rows == ({"fiberNo": "2", "loss": 1.5},)

    def test_out_of_range_checked_before_floor(self):
        with pytest.raises(IndexOutOfRange):
            self._readings().remove_row(4)
        with pytest.raises(IndexOutOfRange):
            self._readings().update_row(1, {"loss": 2})

    def test_update_merges_patch(self):
        readings = self._readings().update_row(0, {"loss": 3.2})
        assert readings.rows[0] == {"fiberNo": "1", "loss": 3.2}

    def test_validate_all_reports_per_row(self, site_schema):
        spec = site_schema.field("readings")
        readings = self._readings().add_row({"fiberNo": "9", "loss": -1})
        valid, errors = readings.validate_all(spec.row_fields)
        assert not valid
        assert errors[0] == {}
        assert set(errors[1]) == {"fiberNo", "loss"}

    def test_validate_all_checks_floor(self, site_schema):
        spec = site_schema.field("readings")
        empty = SubRecordList(field="readings", rows=(), min_rows=1)
        valid, errors = empty.validate_all(spec.row_fields)
        assert not valid
        assert errors == []
