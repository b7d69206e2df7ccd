"""
Adapters layer - Calendar stores (local JSON file, Microsoft Graph API).
"""

from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarRepository
from .json_store import JsonCalendarStore

__all__ = ["GraphAuthenticator", "GraphCalendarRepository", "JsonCalendarStore"]
