"""
Request construction

Turns (url, params, headers, method) into the exact request that goes on
the wire. Pure: no I/O, no session state.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote, urlencode

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

BASE_HEADERS = {
    'Content-Type': JSON_CONTENT_TYPE,
}


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class OutgoingRequest:
    """A fully composed HTTP request"""
    method: HttpMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None


def merge_headers(base: Mapping[str, str], extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Base headers extended by per-call headers; later keys win."""
    merged = dict(base)
    if extra:
        merged.update(extra)
    return merged


def header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup"""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def encode_query(params: Mapping[str, Any]) -> str:
    """Percent-encode params per RFC 3986 (spaces become %20)"""
    return urlencode(params, doseq=True, quote_via=quote)


def encode_body(params: Any, content_type: Optional[str]) -> Union[str, bytes]:
    if isinstance(params, (str, bytes)):
        return params
    if content_type and content_type.split(';')[0].strip().lower() == JSON_CONTENT_TYPE:
        return json.dumps(params)
    return urlencode(params, doseq=True)


def build_request(
    url: str,
    params: Any = None,
    headers: Optional[Mapping[str, str]] = None,
    method: HttpMethod = HttpMethod.GET,
    base_headers: Mapping[str, str] = BASE_HEADERS
) -> OutgoingRequest:
    """
    Compose a request.

    GET carries params in the query string and never has a body. Every other
    method carries params in the body, JSON-encoded when the merged
    Content-Type is application/json and form-encoded otherwise.
    """
    method = HttpMethod(method)
    request_headers = merge_headers(base_headers, headers)
    body = None

    if params:
        if method is HttpMethod.GET:
            separator = '&' if '?' in url else '?'
            url = f"{url}{separator}{encode_query(params)}"
        else:
            body = encode_body(params, header_value(request_headers, 'Content-Type'))

    return OutgoingRequest(method=method, url=url, headers=request_headers, body=body)
