"""
Backend collaborator access.

- studio_client: conversation turns, mapping save/confirm/export, audit, DB admin
- audit_poller: cancellable background audit refresh
"""

from .audit_poller import AuditPoller
from .studio_client import StudioApiError, StudioClient

__all__ = ["AuditPoller", "StudioApiError", "StudioClient"]
