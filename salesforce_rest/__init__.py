"""
salesforce-rest

Client for the Salesforce REST API and the asynchronous job (Bulk) API:
OAuth username-password login, CRUD, SOQL, describe, and the
job -> batch -> results workflow.
"""

__version__ = "1.0.0"

from .api import (
    SalesforceClient,
    BulkClient,
    Job,
    BatchInfo,
    BatchResult,
    JobOperation,
    JobState,
    BatchState,
    ContentType,
    ApiResponse,
    ReturnType,
)
from .auth import Session
from .config import ClientConfig, load_config
from .exceptions import (
    SalesforceError,
    NotAuthenticatedError,
    AuthError,
    TransportError,
    ApiError,
    JobTransitionError,
    InvalidReferenceError,
)
from .log import configure_logging

__all__ = [
    'SalesforceClient',
    'BulkClient',
    'Job',
    'BatchInfo',
    'BatchResult',
    'JobOperation',
    'JobState',
    'BatchState',
    'ContentType',
    'ApiResponse',
    'ReturnType',
    'Session',
    'ClientConfig',
    'load_config',
    'SalesforceError',
    'NotAuthenticatedError',
    'AuthError',
    'TransportError',
    'ApiError',
    'JobTransitionError',
    'InvalidReferenceError',
    'configure_logging',
]
