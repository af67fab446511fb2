"""
Response classification and decoding

Decides whether a Salesforce response is a success, an empty success,
a not-modified answer or an error, without touching the network.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from types import SimpleNamespace
from typing import Any, Dict, Optional

from ..exceptions import ApiError

NOT_MODIFIED_BODY = json.dumps({'message': 'not modified'})
EMPTY_SUCCESS_BODY = json.dumps({'success': True})

SUCCESS_STATUSES = frozenset({200, 201, 204, 300})
NOT_MODIFIED_STATUS = 304


class ReturnType(str, Enum):
    """How JSON bodies are handed back to callers"""
    ARRAY = "array"
    OBJECT = "object"


class Outcome(Enum):
    SUCCESS = "success"
    EMPTY_SUCCESS = "empty_success"
    NOT_MODIFIED = "not_modified"


@dataclass(frozen=True)
class RequestDiagnostics:
    """What was sent and what came back, for error reports and callers"""
    method: str
    url: str
    status_code: Optional[int] = None
    request_headers: Dict[str, str] = field(default_factory=dict)
    response_headers: Dict[str, str] = field(default_factory=dict)
    elapsed: Optional[float] = None


@dataclass(frozen=True)
class ClassifiedResponse:
    outcome: Outcome
    body: str


@dataclass(frozen=True)
class ApiResponse:
    """Decoded body of a successful call plus its diagnostics"""
    data: Any
    outcome: Outcome
    diagnostics: Optional[RequestDiagnostics] = None


def error_details(body: str):
    """
    Extract (message, error_code) from an error body.

    OAuth errors look like {"error": ..., "error_description": ...} and
    REST errors like [{"message": ..., "errorCode": ...}]. Anything else
    is reported verbatim.
    """
    try:
        parsed = json.loads(body)
    except ValueError:
        return body, None

    if isinstance(parsed, dict) and 'error' in parsed and 'error_description' in parsed:
        return parsed['error_description'], parsed['error']

    if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
        return body, parsed[0].get('errorCode')

    return body, None


def classify_response(
    status_code: int,
    body: Optional[str],
    diagnostics: Optional[RequestDiagnostics] = None
) -> ClassifiedResponse:
    """
    Map an HTTP status and body to a classified outcome.

    Raises:
        ApiError: for any status outside 200/201/204/300/304
    """
    body = body or ""

    if status_code == NOT_MODIFIED_STATUS:
        return ClassifiedResponse(Outcome.NOT_MODIFIED, body or NOT_MODIFIED_BODY)

    if status_code in SUCCESS_STATUSES:
        if body == "":
            return ClassifiedResponse(Outcome.EMPTY_SUCCESS, EMPTY_SUCCESS_BODY)
        return ClassifiedResponse(Outcome.SUCCESS, body)

    message, error_code = error_details(body)
    if not message:
        message = f"HTTP {status_code}"

    raise ApiError(message, body=body, diagnostics=diagnostics, error_code=error_code)


def decode_body(
    body: str,
    return_type: ReturnType = ReturnType.ARRAY,
    diagnostics: Optional[RequestDiagnostics] = None
) -> Any:
    """Decode JSON into dicts/lists or into attribute-style namespaces"""
    return_type = ReturnType(return_type)
    try:
        if return_type is ReturnType.OBJECT:
            return json.loads(body, object_hook=lambda d: SimpleNamespace(**d))
        return json.loads(body)
    except ValueError as e:
        raise ApiError(f"Response is not valid JSON: {e}", body=body, diagnostics=diagnostics)
