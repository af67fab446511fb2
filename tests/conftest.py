"""Shared pytest fixtures."""

import json
from typing import Any, List

import pytest

from salesforce_rest.api.client import SalesforceClient
from salesforce_rest.api.request import OutgoingRequest
from salesforce_rest.api.transport import RawResponse

INSTANCE_URL = "https://na1.salesforce.com"
REST_BASE = f"{INSTANCE_URL}/services/data/v59.0/"
JOB_BASE = f"{INSTANCE_URL}/services/async/59.0/job"
ACCESS_TOKEN = "00Dxx0000001gPL!token"


class FakeTransport:
    """Records outgoing requests and answers with queued responses"""

    def __init__(self):
        self.requests: List[OutgoingRequest] = []
        self.responses: List[RawResponse] = []
        self.closed = False

    def queue(self, status_code: int, body: Any = "", headers=None):
        if not isinstance(body, str):
            body = json.dumps(body)
        self.responses.append(RawResponse(status_code=status_code, text=body, headers=headers or {}))

    def send(self, request: OutgoingRequest) -> RawResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method.value} {request.url}")
        return self.responses.pop(0)

    def close(self):
        self.closed = True

    @property
    def last(self) -> OutgoingRequest:
        return self.requests[-1]


def login_response(instance_url: str = INSTANCE_URL) -> dict:
    return {
        "access_token": ACCESS_TOKEN,
        "instance_url": instance_url,
        "id": "https://login.salesforce.com/id/00Dxx0000001gPLEAY/005xx000001SwiUAAS",
        "token_type": "Bearer",
        "issued_at": "1700000000000",
        "signature": "0CmxinZir53Yex7nE0TD+zMpvIWYGb/bdJh6XfOH6EQ=",
    }


def job_payload(job_id: str = "750x000000001", state: str = "Open", operation: str = "insert",
                sobject: str = "Account", **extra) -> dict:
    data = {
        "id": job_id,
        "operation": operation,
        "object": sobject,
        "createdById": "005xx000001SwiUAAS",
        "createdDate": "2024-01-15T10:30:00.000+0000",
        "systemModstamp": "2024-01-15T10:30:00.000+0000",
        "state": state,
        "concurrencyMode": "Parallel",
        "contentType": "JSON",
    }
    data.update(extra)
    return data


def batch_payload(batch_id: str = "751x000000001", job_id: str = "750x000000001",
                  state: str = "Queued", **extra) -> dict:
    data = {
        "id": batch_id,
        "jobId": job_id,
        "state": state,
        "createdDate": "2024-01-15T10:31:00.000+0000",
        "systemModstamp": "2024-01-15T10:31:00.000+0000",
        "numberRecordsProcessed": 0,
        "numberRecordsFailed": 0,
    }
    data.update(extra)
    return data


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(transport):
    """A client that has not logged in"""
    return SalesforceClient(
        "https://login.salesforce.com",
        "59.0",
        "consumer-key",
        "consumer-secret",
        transport=transport
    )


@pytest.fixture
def logged_in_client(client, transport):
    """A client with a populated session and no requests recorded"""
    transport.queue(200, login_response())
    client.login("user@example.com", "secret", "SECTOKEN")
    transport.requests.clear()
    return client
