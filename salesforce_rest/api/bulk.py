"""
Salesforce asynchronous job API client

Jobs group one operation against one object type. Each job takes any
number of batches, processed independently by Salesforce:

    job = client.bulk.create_job(JobOperation.INSERT, "Account", ContentType.JSON)
    batch = client.bulk.add_batch(job, [{"Name": "Acme"}])
    client.bulk.close_job(job)
    ...
    results = client.bulk.get_batch_results(job, batch)

All returned objects are snapshots; nothing is cached between calls.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import structlog

from ..exceptions import ApiError, InvalidReferenceError, JobTransitionError
from .request import JSON_CONTENT_TYPE, HttpMethod

if TYPE_CHECKING:
    from .client import SalesforceClient

logger = structlog.get_logger()


class JobOperation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"
    HARD_DELETE = "hardDelete"
    QUERY = "query"


class ContentType(str, Enum):
    JSON = "JSON"
    CSV = "CSV"
    XML = "XML"
    ZIP_JSON = "ZIP_JSON"
    ZIP_CSV = "ZIP_CSV"
    ZIP_XML = "ZIP_XML"


# Content-Type header for batch payloads of each job content type
BATCH_MEDIA_TYPES = {
    ContentType.JSON: "application/json",
    ContentType.CSV: "text/csv",
    ContentType.XML: "application/xml",
    ContentType.ZIP_JSON: "zip/json",
    ContentType.ZIP_CSV: "zip/csv",
    ContentType.ZIP_XML: "zip/xml",
}


class JobState(str, Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    ABORTED = "Aborted"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.OPEN


class BatchState(str, Enum):
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NOT_PROCESSED = "NotProcessed"


def _coerce(enum_cls, value):
    """Enum member for known values; unknown strings are kept as-is"""
    try:
        return enum_cls(value)
    except ValueError:
        if isinstance(value, str) and value:
            return value
        raise


@dataclass(frozen=True)
class Job:
    """
    Server-side job as of the moment it was fetched.

    operation, content_type and state are enum members when the value is
    known, otherwise the raw string Salesforce sent.
    """
    id: str
    operation: Union[JobOperation, str]
    object: str
    content_type: Union[ContentType, str]
    state: Union[JobState, str]
    external_id_field: Optional[str] = None
    created_date: Optional[str] = None
    system_modstamp: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Job':
        return cls(
            id=data['id'],
            operation=_coerce(JobOperation, data['operation']),
            object=data['object'],
            content_type=_coerce(ContentType, data['contentType']),
            state=_coerce(JobState, data['state']),
            external_id_field=data.get('externalIdFieldName'),
            created_date=data.get('createdDate'),
            system_modstamp=data.get('systemModstamp'),
            raw=data
        )


@dataclass(frozen=True)
class BatchInfo:
    """A batch and the job it belongs to"""
    id: str
    job: Job
    state: Union[BatchState, str]
    state_message: Optional[str] = None
    created_date: Optional[str] = None
    system_modstamp: Optional[str] = None
    number_records_processed: int = 0
    number_records_failed: int = 0
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], job: Job) -> 'BatchInfo':
        return cls(
            id=data['id'],
            job=job,
            state=_coerce(BatchState, data['state']),
            state_message=data.get('stateMessage'),
            created_date=data.get('createdDate'),
            system_modstamp=data.get('systemModstamp'),
            number_records_processed=int(data.get('numberRecordsProcessed') or 0),
            number_records_failed=int(data.get('numberRecordsFailed') or 0),
            raw=data
        )


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one submitted row"""
    id: Optional[str]
    success: bool
    created: bool
    errors: List[Any]
    batch_info: BatchInfo

    @classmethod
    def from_dict(cls, data: Dict[str, Any], batch_info: BatchInfo) -> 'BatchResult':
        return cls(
            id=data.get('id'),
            success=bool(data.get('success')),
            created=bool(data.get('created')),
            errors=list(data.get('errors') or []),
            batch_info=batch_info
        )


JobReference = Union[str, Job]
BatchReference = Union[str, BatchInfo]


def resolve_reference(reference: Any, kind: str = "Job") -> str:
    """
    Resolve a bare id or a fetched handle to an id.

    Anything carrying an ``id`` resolves to it; a non-empty string is the
    id itself.

    Raises:
        InvalidReferenceError: for anything else, including '' and None
    """
    reference_id = getattr(reference, 'id', None)
    if reference_id:
        return reference_id
    if isinstance(reference, str) and reference:
        return reference
    raise InvalidReferenceError(f"A {kind} ID or instance of {kind} must be provided.")


def resolve_job_id(job: JobReference) -> str:
    return resolve_reference(job, "Job")


def resolve_batch_id(batch: BatchReference) -> str:
    return resolve_reference(batch, "BatchInfo")


class BulkClient:
    """
    Job/batch operations over the async API.

    Every operation accepts either an id string or a previously fetched
    Job/BatchInfo. When a bare id is given and the result needs the full
    parent object, the parent is fetched with one extra request.
    """

    def __init__(self, client: "SalesforceClient"):
        self.client = client

    def create_job(
        self,
        operation: Union[JobOperation, str],
        object_name: str,
        content_type: Union[ContentType, str] = ContentType.JSON,
        external_id_field: Optional[str] = None
    ) -> Job:
        """
        Create a new job.

        externalIdFieldName is only sent for upsert jobs. An upsert job
        without one is left for Salesforce to reject.
        """
        operation = JobOperation(operation)
        payload = {
            "operation": operation.value,
            "object": object_name,
            "contentType": ContentType(content_type).value
        }

        if external_id_field and operation is JobOperation.UPSERT:
            payload["externalIdFieldName"] = external_id_field

        job = _snapshot(Job.from_dict, self.client.batch_request('', payload))
        logger.info("bulk_job_created", job_id=job.id, sobject=object_name, operation=operation.value)
        return job

    def close_job(self, job: JobReference) -> Job:
        """Close an open job so Salesforce finishes processing its batches"""
        return self._transition(job, JobState.CLOSED)

    def abort_job(self, job: JobReference) -> Job:
        """Abort an open job; unprocessed batches are not run"""
        return self._transition(job, JobState.ABORTED)

    def _transition(self, job: JobReference, target: JobState) -> Job:
        job_id = resolve_job_id(job)

        data = self.client.batch_request(f"/{job_id}", {'state': target.value}, HttpMethod.PATCH)

        actual_state = data.get('state') if isinstance(data, dict) else None
        if actual_state != target.value:
            logger.error("bulk_job_transition_rejected", job_id=job_id, requested=target.value, state=actual_state)
            raise JobTransitionError(job_id, target.value, actual_state)

        logger.info("bulk_job_state_changed", job_id=job_id, state=target.value)
        return _snapshot(Job.from_dict, data)

    def get_job(self, job: JobReference) -> Job:
        job_id = resolve_job_id(job)
        return _snapshot(Job.from_dict, self.client.batch_request(f"/{job_id}", None, HttpMethod.GET))

    def get_job_batches(self, job: JobReference) -> List[BatchInfo]:
        """All batches of a job"""
        job_id = resolve_job_id(job)

        data = self.client.batch_request(f"/{job_id}/batch", None, HttpMethod.GET)

        job = self._hydrate_job(job)
        return _snapshot(lambda d: [BatchInfo.from_dict(batch, job) for batch in d.get('batchInfo', [])], data)

    def add_batch(
        self,
        job: JobReference,
        payload: Any,
        content_type: Optional[Union[ContentType, str]] = None
    ) -> BatchInfo:
        """
        Submit a batch of records to an open job.

        The Content-Type header follows content_type, else the content type
        of a Job handle, else JSON. JSON payloads may be records and are
        encoded here; CSV/XML/ZIP payloads must already be str or bytes.
        Responses are decoded as JSON, so only JSON jobs get a BatchInfo
        back; Salesforce answers CSV and XML jobs in XML, which raises
        ApiError.

        Args:
            job: Job id or Job
            payload: Records, or the encoded batch body
            content_type: Job content type when job is a bare id
        """
        job_id = resolve_job_id(job)

        if content_type is None and isinstance(job, Job):
            content_type = job.content_type
        media_type = BATCH_MEDIA_TYPES.get(_coerce(ContentType, content_type or ContentType.JSON), JSON_CONTENT_TYPE)
        if media_type != JSON_CONTENT_TYPE and not isinstance(payload, (str, bytes)):
            raise TypeError(f"A {media_type} batch payload must be str or bytes")

        data = self.client.batch_request(f"/{job_id}/batch", payload, HttpMethod.POST, media_type)

        job = self._hydrate_job(job)
        batch = _snapshot(BatchInfo.from_dict, data, job)
        logger.info("bulk_batch_added", job_id=job_id, batch_id=batch.id)
        return batch

    def get_batch_info(self, job: JobReference, batch: BatchReference) -> BatchInfo:
        job_id = resolve_job_id(job)
        batch_id = resolve_batch_id(batch)

        data = self.client.batch_request(f"/{job_id}/batch/{batch_id}", None, HttpMethod.GET)

        return _snapshot(BatchInfo.from_dict, data, self._hydrate_job(job))

    def get_batch_results(self, job: JobReference, batch: BatchReference) -> List[BatchResult]:
        """
        Per-row results of a processed batch.

        Rows carry their own success flag; failed rows do not raise.
        A bare batch id costs one more request to fetch its BatchInfo,
        and with a bare job id as well that fetch also loads the Job,
        so passing both as ids makes three requests in total.
        """
        job_id = resolve_job_id(job)
        batch_id = resolve_batch_id(batch)

        data = self.client.batch_request(f"/{job_id}/batch/{batch_id}/result", None, HttpMethod.GET)

        if not isinstance(batch, BatchInfo):
            batch = self.get_batch_info(job, batch_id)

        if not isinstance(data, list):
            raise ApiError("Unexpected job API response: batch results are not a list", body=json.dumps(data, default=str))
        return _snapshot(lambda rows: [BatchResult.from_dict(row, batch) for row in rows], data)

    def _hydrate_job(self, job: JobReference) -> Job:
        if isinstance(job, Job):
            return job
        return self.get_job(job)


def _snapshot(factory, data, *args):
    """
    Build domain objects from a job API body.

    Raises:
        ApiError: the body does not have the expected shape
    """
    try:
        return factory(data, *args)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error("bulk_unexpected_response", error=repr(e))
        raise ApiError(f"Unexpected job API response: {e!r}", body=json.dumps(data, default=str)) from e
