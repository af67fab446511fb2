"""Authentication module for Salesforce OAuth 2.0"""
from .oauth import SalesforceAuth, Session

__all__ = ['SalesforceAuth', 'Session']
