"""Tests for domain models."""

import pytest

from catalog_search.models import (
    OperationResult,
    ReindexJob,
    ReindexJobStatus,
    ReindexRequest,
    ResourceEvent,
    ResourceEventType,
    serialize_body,
)


class TestResourceEvent:
    """Tests for ResourceEvent."""

    def test_parse_wire_format(self) -> None:
        """Test events are parsed from the change feed's field names."""
        event = ResourceEvent.model_validate(
            {
                "id": "i1",
                "resourceName": "instance",
                "tenant": "diku",
                "type": "CREATE",
                "new": {"title": "Moby Dick"},
            }
        )
        assert event.resource_type == "instance"
        assert event.type is ResourceEventType.CREATE
        assert event.new_data == {"title": "Moby Dick"}
        assert event.old_data is None
        assert not event.is_delete

    def test_to_message(self) -> None:
        event = ResourceEvent(
            id="i1", resource_type="instance", tenant="diku", type=ResourceEventType.DELETE
        )
        assert event.to_message() == {
            "id": "i1",
            "resourceName": "instance",
            "tenant": "diku",
            "type": "DELETE",
        }

    def test_immutable(self) -> None:
        event = ResourceEvent(id="i1", resource_type="instance")
        with pytest.raises(ValueError):
            event.id = "i2"  # type: ignore[misc]


class TestSerializeBody:
    def test_canonical(self) -> None:
        """Test key order does not affect the serialized body."""
        assert serialize_body({"b": 1, "a": "é"}) == serialize_body({"a": "é", "b": 1})
        assert serialize_body({"b": 1, "a": 2}) == '{"a":2,"b":1}'


class TestOperationResult:
    """Tests for OperationResult."""

    def test_merge_success(self) -> None:
        merged = OperationResult.merge(
            [OperationResult.success(["a"]), OperationResult.success(["b"])]
        )
        assert merged.is_success
        assert merged.indices == ["a", "b"]

    def test_merge_error(self) -> None:
        merged = OperationResult.merge(
            [OperationResult.success(["a"]), OperationResult.error("boom")]
        )
        assert not merged.is_success
        assert merged.error_message == "boom"
        assert merged.indices == ["a"]

    def test_merge_empty(self) -> None:
        assert OperationResult.merge([]).is_success

    def test_serialized_with_alias(self) -> None:
        body = OperationResult.error("boom").model_dump(by_alias=True)
        assert body["errorMessage"] == "boom"


class TestReindexJob:
    """Tests for ReindexJob."""

    def test_defaults(self) -> None:
        job = ReindexJob()
        assert job.job_status is ReindexJobStatus.IN_PROGRESS
        assert job.id
        assert job.submitted_date

    def test_parse_external_response(self) -> None:
        job = ReindexJob.model_validate(
            {"id": "job-1", "submittedDate": "2024-01-01T00:00:00.000Z", "jobStatus": "Completed"}
        )
        assert job.id == "job-1"
        assert job.job_status is ReindexJobStatus.COMPLETED

    def test_transition(self) -> None:
        job = ReindexJob()
        job.transition(ReindexJobStatus.ERROR, "failed")
        assert job.job_status is ReindexJobStatus.ERROR
        assert job.error_message == "failed"

    def test_terminal_status_is_final(self) -> None:
        """Test a terminal job cannot change status."""
        job = ReindexJob.completed("location")
        with pytest.raises(ValueError, match="already Completed"):
            job.transition(ReindexJobStatus.IN_PROGRESS)


class TestReindexRequest:
    def test_camel_case(self) -> None:
        request = ReindexRequest.model_validate({"resourceName": "location", "recreateIndex": True})
        assert request.resource_name == "location"
        assert request.recreate_index is True

    def test_defaults(self) -> None:
        request = ReindexRequest()
        assert request.resource_name is None
        assert request.recreate_index is False
