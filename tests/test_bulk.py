"""
Tests for the job/batch workflow
"""

import json
from types import SimpleNamespace

import pytest

from salesforce_rest.api.bulk import (
    BatchInfo,
    BatchState,
    ContentType,
    Job,
    JobOperation,
    JobState,
    resolve_batch_id,
    resolve_job_id,
)
from salesforce_rest.api.client import SalesforceClient
from salesforce_rest.api.response import ReturnType
from salesforce_rest.exceptions import ApiError, InvalidReferenceError, JobTransitionError

from conftest import ACCESS_TOKEN, INSTANCE_URL, JOB_BASE, batch_payload, job_payload, login_response


@pytest.fixture
def bulk(logged_in_client):
    return logged_in_client.bulk


@pytest.fixture
def job():
    return Job.from_dict(job_payload())


class TestReferenceResolution:
    """Test id-or-handle resolution"""

    def test_string_returned_unchanged(self):
        assert resolve_job_id("750x000000001") == "750x000000001"

    def test_handle_resolves_to_its_id(self, job):
        assert resolve_job_id(job) == "750x000000001"

    def test_anything_with_an_id(self):
        assert resolve_batch_id(SimpleNamespace(id="751x000000001")) == "751x000000001"

    @pytest.mark.parametrize("reference", ["", None, False, 0, SimpleNamespace(id="")])
    def test_unresolvable_references(self, reference):
        with pytest.raises(InvalidReferenceError, match="Job ID or instance of Job"):
            resolve_job_id(reference)

    def test_batch_error_names_batch(self):
        with pytest.raises(InvalidReferenceError, match="BatchInfo"):
            resolve_batch_id(None)

    def test_invalid_reference_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_job_id("")

    def test_resolution_happens_before_io(self, bulk, transport):
        with pytest.raises(InvalidReferenceError):
            bulk.add_batch("", [{"Name": "Acme"}])

        with pytest.raises(InvalidReferenceError):
            bulk.get_batch_results("750x000000001", None)

        assert transport.requests == []


class TestCreateJob:
    """Test job creation payloads"""

    def test_create_job(self, bulk, transport):
        transport.queue(201, job_payload())

        job = bulk.create_job(JobOperation.INSERT, "Account", ContentType.JSON)

        assert job.id == "750x000000001"
        assert job.state is JobState.OPEN
        assert job.operation is JobOperation.INSERT
        request = transport.last
        assert request.method.value == "POST"
        assert request.url == JOB_BASE
        assert json.loads(request.body) == {"operation": "insert", "object": "Account", "contentType": "JSON"}

    def test_job_requests_use_session_header(self, bulk, transport):
        transport.queue(201, job_payload())

        bulk.create_job("insert", "Account", "JSON")

        assert transport.last.headers["X-SFDC-Session"] == ACCESS_TOKEN
        assert "Authorization" not in transport.last.headers

    def test_upsert_includes_external_id_field(self, bulk, transport):
        transport.queue(201, job_payload(operation="upsert", externalIdFieldName="Ext_Id__c"))

        job = bulk.create_job("upsert", "Account", "JSON", "Ext_Id__c")

        assert json.loads(transport.last.body)["externalIdFieldName"] == "Ext_Id__c"
        assert job.external_id_field == "Ext_Id__c"

    def test_upsert_without_external_id_field_is_sent_anyway(self, bulk, transport):
        transport.queue(201, job_payload(operation="upsert"))

        bulk.create_job("upsert", "Account", "JSON")

        assert "externalIdFieldName" not in json.loads(transport.last.body)

    @pytest.mark.parametrize("operation", ["insert", "update", "delete"])
    def test_external_id_field_only_for_upsert(self, bulk, transport, operation):
        transport.queue(201, job_payload(operation=operation))

        bulk.create_job(operation, "Account", "JSON", "Ext_Id__c")

        assert "externalIdFieldName" not in json.loads(transport.last.body)


class TestJobTransitions:
    """Test closing and aborting jobs"""

    def test_close_job(self, bulk, transport):
        transport.queue(200, job_payload(state="Closed"))

        job = bulk.close_job("750x000000001")

        assert job.state is JobState.CLOSED
        assert job.state.is_terminal
        assert transport.last.method.value == "PATCH"
        assert transport.last.url == f"{JOB_BASE}/750x000000001"
        assert json.loads(transport.last.body) == {"state": "Closed"}

    def test_close_rejected_by_server(self, bulk, transport):
        transport.queue(200, job_payload(state="Open"))

        with pytest.raises(JobTransitionError) as exc_info:
            bulk.close_job("750x000000001")

        error = exc_info.value
        assert error.job_id == "750x000000001"
        assert error.requested_state == "Closed"
        assert error.actual_state == "Open"
        assert "could not be closed" in str(error)

    def test_abort_job_with_handle(self, bulk, transport, job):
        transport.queue(200, job_payload(state="Aborted"))

        aborted = bulk.abort_job(job)

        assert aborted.state is JobState.ABORTED
        assert transport.last.url == f"{JOB_BASE}/750x000000001"
        assert json.loads(transport.last.body) == {"state": "Aborted"}

    def test_abort_job_with_bare_id(self, bulk, transport):
        transport.queue(200, job_payload(job_id="750x000000002", state="Aborted"))

        bulk.abort_job("750x000000002")

        assert transport.last.url == f"{JOB_BASE}/750x000000002"

    def test_abort_rejected_by_server(self, bulk, transport):
        transport.queue(200, job_payload(state="Closed"))

        with pytest.raises(JobTransitionError, match="could not be aborted"):
            bulk.abort_job("750x000000001")

    def test_get_job(self, bulk, transport):
        transport.queue(200, job_payload(state="Failed"))

        job = bulk.get_job("750x000000001")

        assert job.state is JobState.FAILED
        assert transport.last.method.value == "GET"
        assert transport.last.body is None


class TestBatches:
    """Test batch submission and retrieval"""

    def test_add_batch_with_bare_id_hydrates_job(self, bulk, transport):
        transport.queue(201, batch_payload(job_id="job123"))
        transport.queue(200, job_payload(job_id="job123"))

        batch = bulk.add_batch("job123", [{"Name": "Acme"}])

        post, get = transport.requests
        assert post.method.value == "POST"
        assert post.url == f"{JOB_BASE}/job123/batch"
        assert post.headers["X-SFDC-Session"] == ACCESS_TOKEN
        assert json.loads(post.body) == [{"Name": "Acme"}]
        assert get.method.value == "GET"
        assert get.url == f"{JOB_BASE}/job123"
        assert isinstance(batch, BatchInfo)
        assert batch.state is BatchState.QUEUED
        assert batch.job.id == "job123"
        assert batch.job.object == "Account"

    def test_add_batch_with_handle_skips_fetch(self, bulk, transport, job):
        transport.queue(201, batch_payload())

        batch = bulk.add_batch(job, [{"Name": "Acme"}])

        assert len(transport.requests) == 1
        assert batch.job is job

    def test_get_job_batches(self, bulk, transport):
        transport.queue(200, {"batchInfo": [
            batch_payload("751x000000001", state="Completed", numberRecordsProcessed=2),
            batch_payload("751x000000002", state="InProgress"),
        ]})
        transport.queue(200, job_payload())

        batches = bulk.get_job_batches("750x000000001")

        assert transport.requests[0].url == f"{JOB_BASE}/750x000000001/batch"
        assert [b.id for b in batches] == ["751x000000001", "751x000000002"]
        assert batches[0].state is BatchState.COMPLETED
        assert batches[0].number_records_processed == 2
        assert batches[0].job is batches[1].job
        assert batches[0].job.id == "750x000000001"

    def test_get_batch_info(self, bulk, transport, job):
        transport.queue(200, batch_payload(state="Failed", stateMessage="InvalidBatch : Records invalid"))

        batch = bulk.get_batch_info(job, "751x000000001")

        assert transport.last.url == f"{JOB_BASE}/750x000000001/batch/751x000000001"
        assert batch.state is BatchState.FAILED
        assert batch.state_message == "InvalidBatch : Records invalid"
        assert batch.job is job

    def test_get_batch_results_keeps_row_outcomes(self, bulk, transport, job):
        batch = BatchInfo.from_dict(batch_payload(state="Completed"), job)
        transport.queue(200, [
            {"success": True, "created": True, "id": "001xx0000001", "errors": []},
            {"success": False, "created": False, "id": None,
             "errors": [{"message": "Required fields are missing: [Name]", "statusCode": "REQUIRED_FIELD_MISSING"}]},
        ])

        results = bulk.get_batch_results(job, batch)

        assert len(transport.requests) == 1
        assert transport.last.url == f"{JOB_BASE}/750x000000001/batch/751x000000001/result"
        assert results[0].success and results[0].created
        assert results[0].id == "001xx0000001"
        assert not results[1].success
        assert results[1].errors[0]["statusCode"] == "REQUIRED_FIELD_MISSING"
        assert results[1].batch_info is batch

    def test_get_batch_results_with_bare_batch_id(self, bulk, transport, job):
        transport.queue(200, [{"success": True, "created": False, "id": "001xx0000001", "errors": []}])
        transport.queue(200, batch_payload(state="Completed"))

        results = bulk.get_batch_results(job, "751x000000001")

        assert transport.requests[1].url == f"{JOB_BASE}/750x000000001/batch/751x000000001"
        assert results[0].batch_info.id == "751x000000001"
        assert results[0].batch_info.job is job

    def test_job_api_error_propagates(self, bulk, transport):
        transport.queue(400, {"exceptionCode": "InvalidJob", "exceptionMessage": "Job not found"})

        with pytest.raises(ApiError) as exc_info:
            bulk.get_job("750missing")

        assert exc_info.value.status_code == 400
        assert "InvalidJob" in exc_info.value.body

    def test_job_responses_are_dicts_in_object_mode(self, transport):
        client = SalesforceClient(INSTANCE_URL, "59.0", "id", "secret", ReturnType.OBJECT, transport)
        transport.queue(200, login_response())
        client.login("user@example.com", "secret", "")
        transport.queue(201, job_payload())

        job = client.bulk.create_job("insert", "Account", "JSON")

        assert job.raw["id"] == "750x000000001"


class TestBatchResultRoundTrips:

    def test_bare_job_and_batch_ids_cost_three_requests(self, bulk, transport):
        transport.queue(200, [{"success": True, "created": True, "id": "001xx0000001", "errors": []}])
        transport.queue(200, batch_payload(state="Completed"))
        transport.queue(200, job_payload())

        results = bulk.get_batch_results("750x000000001", "751x000000001")

        assert [r.url for r in transport.requests] == [
            f"{JOB_BASE}/750x000000001/batch/751x000000001/result",
            f"{JOB_BASE}/750x000000001/batch/751x000000001",
            f"{JOB_BASE}/750x000000001",
        ]
        assert results[0].batch_info.job.id == "750x000000001"


class TestSnapshots:
    """Test decoding of job and batch bodies the server sends back"""

    def test_close_job_with_hard_delete_operation(self, bulk, transport):
        transport.queue(200, job_payload(state="Closed", operation="hardDelete"))

        job = bulk.close_job("750x000000001")

        assert job.state is JobState.CLOSED
        assert job.operation is JobOperation.HARD_DELETE
        assert len(transport.requests) == 1

    def test_zip_content_type(self, bulk, transport):
        transport.queue(200, job_payload(contentType="ZIP_CSV"))

        assert bulk.get_job("750x000000001").content_type is ContentType.ZIP_CSV

    def test_unknown_values_kept_as_strings(self, bulk, transport):
        transport.queue(200, job_payload(state="Aborted", operation="bigObjectIngest", contentType="PARQUET"))

        job = bulk.abort_job("750x000000001")

        assert job.state is JobState.ABORTED
        assert job.operation == "bigObjectIngest"
        assert job.content_type == "PARQUET"

    def test_unknown_batch_state_kept(self, bulk, transport, job):
        transport.queue(200, batch_payload(state="Paused"))

        assert bulk.get_batch_info(job, "751x000000001").state == "Paused"

    def test_job_missing_fields_raises_api_error(self, bulk, transport):
        data = job_payload()
        del data["object"]
        transport.queue(200, data)

        with pytest.raises(ApiError, match="Unexpected job API response") as exc_info:
            bulk.get_job("750x000000001")

        assert json.loads(exc_info.value.body)["id"] == "750x000000001"

    def test_job_without_state_raises_api_error(self, bulk, transport):
        transport.queue(200, job_payload(state=None))

        with pytest.raises(ApiError):
            bulk.get_job("750x000000001")

    def test_results_that_are_not_a_list(self, bulk, transport, job):
        batch = BatchInfo.from_dict(batch_payload(state="Completed"), job)
        transport.queue(200, {"exceptionCode": "InvalidBatch"})

        with pytest.raises(ApiError, match="not a list"):
            bulk.get_batch_results(job, batch)


class TestBatchContentType:
    """Test the Content-Type sent with batch payloads"""

    def test_csv_job_handle(self, bulk, transport):
        job = Job.from_dict(job_payload(contentType="CSV"))
        transport.queue(201, batch_payload())

        bulk.add_batch(job, "Name\nAcme\n")

        assert transport.last.headers["Content-Type"] == "text/csv"
        assert transport.last.headers["X-SFDC-Session"] == ACCESS_TOKEN
        assert transport.last.body == "Name\nAcme\n"

    def test_content_type_for_bare_id(self, bulk, transport):
        transport.queue(201, batch_payload())
        transport.queue(200, job_payload(contentType="XML"))

        bulk.add_batch("750x000000001", "<sObjects/>", content_type=ContentType.XML)

        assert transport.requests[0].headers["Content-Type"] == "application/xml"

    def test_json_by_default(self, bulk, transport, job):
        transport.queue(201, batch_payload())

        bulk.add_batch(job, [{"Name": "Acme"}])

        assert transport.last.headers["Content-Type"] == "application/json"

    def test_csv_records_must_be_encoded_first(self, bulk, transport):
        job = Job.from_dict(job_payload(contentType="CSV"))

        with pytest.raises(TypeError, match="text/csv"):
            bulk.add_batch(job, [{"Name": "Acme"}])

        assert transport.requests == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
