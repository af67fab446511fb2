"""
Salesforce REST API Client

Core client for Salesforce REST operations:
- Login (OAuth username-password flow)
- CRUD operations
- SOQL queries
- Metadata operations

Job/batch operations live on BulkClient, reachable as ``client.bulk``.
"""

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, List, Mapping, Optional

import structlog

from ..auth.oauth import SalesforceAuth, Session
from ..exceptions import ApiError
from .bulk import BulkClient
from .request import BASE_HEADERS, HttpMethod, build_request
from .response import ApiResponse, RequestDiagnostics, ReturnType, classify_response, decode_body
from .transport import HttpTransport

logger = structlog.get_logger()

OBJECT_PATH = "sobjects/"


def http_date(value: datetime) -> str:
    """RFC 1123 date for If-Modified-Since; naive datetimes are taken as UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


class SalesforceClient:
    """
    Salesforce REST API client.

    Every public operation is one blocking request/response round trip.
    The only state shared between calls is the Session, which login()
    replaces. The client does no locking: in a threaded embedding the
    caller must not run login() concurrently with other calls.
    """

    API_VERSION = "59.0"

    def __init__(
        self,
        instance_url: str,
        version: Any = API_VERSION,
        client_id: str = "",
        client_secret: str = "",
        return_type: ReturnType = ReturnType.ARRAY,
        transport: Optional[HttpTransport] = None
    ):
        self.return_type = ReturnType(return_type)
        self.transport = transport or HttpTransport()
        self.session = Session.for_instance(instance_url, version)
        self.auth = SalesforceAuth(self.transport, client_id, client_secret)
        self.bulk = BulkClient(self)
        self._credentials: Optional[Dict[str, str]] = None

    @classmethod
    def from_config(cls, config, transport: Optional[HttpTransport] = None) -> 'SalesforceClient':
        """Build a client from a ClientConfig"""
        transport = transport or HttpTransport(
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            get_attempts=config.get_attempts
        )
        client = cls(
            config.instance_url,
            config.api_version,
            config.client_id,
            config.client_secret,
            return_type=config.return_type,
            transport=transport
        )
        if config.username:
            client._credentials = {
                'username': config.username,
                'password': config.password,
                'security_token': config.security_token,
            }
        return client

    @property
    def api_version(self) -> str:
        return self.session.api_version

    def close(self):
        self.transport.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ==================== Authentication ====================

    def login(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        security_token: str = ""
    ) -> Session:
        """
        Log in with a username, password and security token.

        With no arguments, uses the credentials the client was configured with.

        Returns:
            The populated Session
        """
        if username is None and self._credentials:
            username = self._credentials['username']
            password = self._credentials['password']
            security_token = self._credentials['security_token']
        if not username:
            raise ValueError("A username is required to log in")

        self.session = self.auth.login(self.session, username, password or "", security_token)
        return self.session

    # ==================== Request pipeline ====================

    def execute(
        self,
        url: str,
        params: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        method: HttpMethod = HttpMethod.GET,
        return_type: Optional[ReturnType] = None
    ) -> ApiResponse:
        """
        Send one request and classify/decode the answer.

        Raises:
            ApiError: Salesforce answered with an error status
            TransportError: the request never completed
        """
        request = build_request(url, params, headers, method, BASE_HEADERS)
        response = self.transport.send(request)

        diagnostics = RequestDiagnostics(
            method=request.method.value,
            url=request.url,
            status_code=response.status_code,
            request_headers=request.headers,
            response_headers=response.headers,
            elapsed=response.elapsed
        )

        try:
            classified = classify_response(response.status_code, response.text, diagnostics)
        except ApiError as e:
            self._log_error(e, request.method.value, request.url)
            raise

        data = decode_body(classified.body, return_type or self.return_type, diagnostics)
        return ApiResponse(data=data, outcome=classified.outcome, diagnostics=diagnostics)

    def request(
        self,
        path: str,
        params: Any = None,
        method: HttpMethod = HttpMethod.GET,
        headers: Optional[Mapping[str, str]] = None
    ) -> Any:
        """Authenticated call against the versioned REST base URL"""
        request_headers = {'Authorization': f"Bearer {self.session.require_token()}"}
        if headers:
            request_headers.update(headers)

        url = f"{self.session.versioned_api_base_url}{path}"
        return self.execute(url, params, request_headers, method).data

    def batch_request(
        self,
        path: str,
        payload: Any = None,
        method: HttpMethod = HttpMethod.POST,
        content_type: Optional[str] = None
    ) -> Any:
        """
        Authenticated call against the async job base URL.

        The job API authenticates with X-SFDC-Session, not a bearer header.
        content_type replaces the JSON Content-Type for batch payloads.
        Bodies are always decoded to dicts.
        """
        request_headers = {'X-SFDC-Session': self.session.require_token()}
        if content_type:
            request_headers['Content-Type'] = content_type
        url = f"{self.session.batch_job_base_url}{path}"
        return self.execute(url, payload, request_headers, method, ReturnType.ARRAY).data

    # ==================== Metadata Operations ====================

    def get_api_versions(self) -> Any:
        """List the API versions available on the instance"""
        url = f"{self.session.instance_base_url}/services/data"
        return self.execute(url).data

    def get_org_limits(self) -> Any:
        """Get org limits"""
        return self.request('limits/')

    def get_available_resources(self) -> Any:
        """List the REST resources available for this API version"""
        return self.request('')

    def get_all_objects(self) -> Any:
        return self.request(OBJECT_PATH)

    def get_object_metadata(self, object_name: str, all: bool = False, since: Optional[datetime] = None) -> Any:
        """
        Get object metadata.

        Args:
            object_name: Salesforce object name (e.g., 'Account')
            all: Return the full describe (fields, URLs, child relationships)
            since: Only return metadata modified after this time; otherwise
                Salesforce answers 304 and {"message": "not modified"} is returned
        """
        headers = {}
        if since is not None:
            if not isinstance(since, datetime):
                raise TypeError("since must be a datetime")
            headers['If-Modified-Since'] = http_date(since)

        if all:
            return self.request(f"{OBJECT_PATH}{object_name}/describe/", headers=headers)
        return self.request(f"{OBJECT_PATH}{object_name}", headers=headers)

    # ==================== CRUD Operations ====================

    def create(self, object_name: str, data: Dict[str, Any]) -> Any:
        """
        Create a new record.

        Args:
            object_name: Salesforce object name (e.g., 'Account')
            data: Field values for the new record
        """
        result = self.request(f"{OBJECT_PATH}{object_name}", data, HttpMethod.POST)
        logger.info("record_created", sobject=object_name)
        return result

    def get(self, object_name: str, record_id: str, fields: Optional[List[str]] = None) -> Any:
        """
        Get a record by ID.

        Args:
            object_name: Salesforce object name
            record_id: Record ID
            fields: Optional list of fields to retrieve
        """
        params = {}
        if fields:
            params['fields'] = ','.join(fields)

        return self.request(f"{OBJECT_PATH}{object_name}/{record_id}", params)

    def update(self, object_name: str, record_id: str, data: Dict[str, Any]) -> Any:
        result = self.request(f"{OBJECT_PATH}{object_name}/{record_id}", data, HttpMethod.PATCH)
        logger.info("record_updated", sobject=object_name, id=record_id)
        return result

    def upsert(
        self,
        object_name: str,
        data: Dict[str, Any],
        external_id_field: Optional[str] = None,
        external_id: Optional[str] = None
    ) -> Any:
        """
        Insert or update a record identified by an external ID.

        object_name is either 'Account/Ext_Id__c/123' or just 'Account'
        with external_id_field and external_id given separately.
        """
        path = f"{OBJECT_PATH}{object_name}"
        if external_id_field and external_id is not None:
            path = f"{path}/{external_id_field}/{external_id}"

        result = self.request(path, data, HttpMethod.PATCH)
        logger.info("record_upserted", sobject=object_name)
        return result

    def delete(self, object_name: str, record_id: str) -> Any:
        result = self.request(f"{OBJECT_PATH}{object_name}/{record_id}", None, HttpMethod.DELETE)
        logger.info("record_deleted", sobject=object_name, id=record_id)
        return result

    # ==================== Query Operations ====================

    def search_soql(
        self,
        query: str,
        options: Optional[Dict[str, Any]] = None,
        all: bool = False,
        explain: bool = False
    ) -> Any:
        """
        Execute a SOQL query.

        Args:
            query: SOQL query string, passed through untouched
            options: Extra query-string parameters
            all: Include deleted and merged records (queryAll)
            explain: Return the query plan instead of running the query
        """
        search_data = {'q': query}
        if options:
            search_data.update(options)

        if explain:
            search_data['explain'] = search_data.pop('q')

        path = 'queryAll/' if all else 'query/'
        return self.request(path, search_data, HttpMethod.GET)

    def get_query_from_url(self, path: str) -> Any:
        """Fetch a server-relative URL such as a query's nextRecordsUrl"""
        headers = {'Authorization': f"Bearer {self.session.require_token()}"}
        return self.execute(f"{self.session.instance_base_url}{path}", None, headers).data

    # ==================== Error Handling ====================

    def _log_error(self, error: ApiError, method: str, url: str):
        logger.error(
            "salesforce_api_error",
            method=method,
            url=url,
            status_code=error.status_code,
            error_code=error.error_code,
            error=error.message
        )
