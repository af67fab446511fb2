"""
HTTP transport

Thin adapter over requests.Session. Applies timeouts and turns
network-level failures into TransportError. Status codes are left for
the response classifier.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import requests
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..exceptions import TransportError
from .request import HttpMethod, OutgoingRequest

logger = structlog.get_logger()

DEFAULT_CONNECT_TIMEOUT = 2.0
DEFAULT_READ_TIMEOUT = 60.0


@dataclass(frozen=True)
class RawResponse:
    """Status, headers and undecoded body as received"""
    status_code: int
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed: Optional[float] = None


class HttpTransport:
    """
    Executes OutgoingRequests over a pooled requests.Session.

    get_attempts > 1 retries GET requests that fail at the network level,
    with exponential backoff. Other methods are never retried and no
    request is retried because of its HTTP status.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        get_attempts: int = 1
    ):
        self._session = session or requests.Session()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.get_attempts = max(1, get_attempts)

    def send(self, request: OutgoingRequest) -> RawResponse:
        if request.method is not HttpMethod.GET or self.get_attempts == 1:
            return self._send_once(request)

        retryer = Retrying(
            stop=stop_after_attempt(self.get_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(TransportError),
            reraise=True
        )
        return retryer(self._send_once, request)

    def _send_once(self, request: OutgoingRequest) -> RawResponse:
        start_time = time.time()
        try:
            response = self._session.request(
                request.method.value,
                request.url,
                headers=request.headers,
                data=request.body,
                timeout=(self.connect_timeout, self.read_timeout)
            )
        except requests.RequestException as e:
            logger.warning(
                "salesforce_transport_error",
                method=request.method.value,
                url=request.url,
                error=str(e)
            )
            raise TransportError(str(e)) from e

        return RawResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
            elapsed=time.time() - start_time
        )

    def close(self):
        self._session.close()
