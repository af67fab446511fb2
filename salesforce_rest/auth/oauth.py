"""
Salesforce OAuth 2.0 Authentication

Username-password flow and the session snapshot it produces.
"""

import json
import time
from dataclasses import dataclass, replace
from typing import Optional

import structlog

from ..api.request import FORM_CONTENT_TYPE, HttpMethod, build_request
from ..api.response import RequestDiagnostics, classify_response
from ..api.transport import HttpTransport
from ..exceptions import ApiError, AuthError, NotAuthenticatedError

logger = structlog.get_logger()

LOGIN_PATH = "/services/oauth2/token"
GRANT_TYPE = "password"


def normalize_version(version) -> str:
    """'59.0', 'v59.0' and 59.0 all become '59.0'"""
    return str(version).strip().lstrip('vV')


def versioned_api_url(instance_url: str, version: str) -> str:
    return f"{instance_url}/services/data/v{version}/"


def batch_job_url(instance_url: str, version: str) -> str:
    return f"{instance_url}/services/async/{version}/job"


@dataclass(frozen=True)
class Session:
    """
    Bearer token plus the endpoint URLs derived from the instance.

    A fresh client holds a Session without a token; login replaces it
    with a populated one.
    """
    instance_base_url: str
    versioned_api_base_url: str
    batch_job_base_url: str
    api_version: str
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    issued_at: Optional[float] = None
    signature: Optional[str] = None
    identity_url: Optional[str] = None

    @classmethod
    def for_instance(cls, instance_url: str, api_version) -> 'Session':
        """Unauthenticated session pointing at instance_url"""
        instance_url = instance_url.rstrip('/')
        version = normalize_version(api_version)
        return cls(
            instance_base_url=instance_url,
            versioned_api_base_url=versioned_api_url(instance_url, version),
            batch_job_base_url=batch_job_url(instance_url, version),
            api_version=version
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def require_token(self) -> str:
        """Return the access token or fail before any I/O happens"""
        if not self.access_token:
            raise NotAuthenticatedError()
        return self.access_token

    def with_login_response(self, data: dict) -> 'Session':
        """New session populated from a /services/oauth2/token response"""
        instance_url = data['instance_url'].rstrip('/')
        issued_at = data.get('issued_at')
        return replace(
            self,
            access_token=data['access_token'],
            instance_base_url=instance_url,
            versioned_api_base_url=versioned_api_url(instance_url, self.api_version),
            batch_job_base_url=batch_job_url(instance_url, self.api_version),
            token_type=data.get('token_type'),
            issued_at=float(issued_at) / 1000 if issued_at else time.time(),
            signature=data.get('signature'),
            identity_url=data.get('id')
        )


class SalesforceAuth:
    """
    Salesforce OAuth 2.0 username-password flow.

    The password sent to Salesforce is the user's password with the
    security token appended.
    """

    def __init__(self, transport: HttpTransport, client_id: str, client_secret: str):
        self.transport = transport
        self.client_id = client_id
        self.client_secret = client_secret

    def login(self, session: Session, username: str, password: str, security_token: str = "") -> Session:
        """
        Exchange credentials for a token against session's instance.

        Returns:
            A populated copy of session

        Raises:
            AuthError: the exchange was rejected or the answer is unusable
        """
        logger.info("authenticating_with_salesforce", username=username)

        payload = {
            'grant_type': GRANT_TYPE,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'username': username,
            'password': f"{password}{security_token or ''}"
        }

        request = build_request(
            f"{session.instance_base_url}{LOGIN_PATH}",
            payload,
            {'Content-Type': FORM_CONTENT_TYPE, 'Accept': 'application/json'},
            HttpMethod.POST
        )
        response = self.transport.send(request)
        diagnostics = RequestDiagnostics(
            method=request.method.value,
            url=request.url,
            status_code=response.status_code,
            response_headers=response.headers,
            elapsed=response.elapsed
        )

        try:
            classified = classify_response(response.status_code, response.text, diagnostics)
        except ApiError as e:
            logger.error("authentication_failed", status_code=response.status_code, error=e.message)
            raise AuthError(
                f"Authentication failed: {e.message}",
                body=e.body,
                diagnostics=diagnostics,
                error_code=e.error_code
            ) from e

        try:
            data = json.loads(classified.body)
            new_session = session.with_login_response(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.error("authentication_failed", status_code=response.status_code, error=str(e))
            raise AuthError(
                f"Authentication failed: unexpected token response ({e})",
                body=response.text,
                diagnostics=diagnostics
            ) from e

        logger.info("authentication_successful", instance_url=new_session.instance_base_url)
        return new_session
