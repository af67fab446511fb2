"""Salesforce API client"""
from .client import SalesforceClient
from .bulk import BulkClient, Job, BatchInfo, BatchResult, JobOperation, JobState, BatchState, ContentType
from .response import ApiResponse, ReturnType

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
]
