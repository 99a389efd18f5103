"""Mapper Studio backend API client."""
import logging
from typing import Any, Dict, List, Optional

import requests

from mapperstudio.api.models import (
    AuditEvent,
    DbStatus,
    MappingConfirmResponse,
    MappingSaveResponse,
    StudioResponse,
)
from mapperstudio.config import StudioApiConfig

logger = logging.getLogger(__name__)


class StudioApiError(RuntimeError):
    """HTTP or transport failure talking to the backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def read_api_error(response: requests.Response, fallback: str) -> str:
    """
    Best human-readable error text for a failed response.

    Prefers a ``message`` or ``error`` field in a JSON body, then the raw
    body text, then ``"<fallback>: <status>"``.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error"):
            if isinstance(data.get(key), str) and data[key]:
                return data[key]
    elif data is None and response.text:
        return response.text
    return f"{fallback}: {response.status_code}"


def _body(request: Any) -> Dict[str, Any]:
    return request.to_dict() if hasattr(request, "to_dict") else dict(request)


class StudioClient:
    """Client for the Mapper Studio conversation and mapping endpoints."""

    def __init__(self, config: StudioApiConfig):
        """Initialize client."""
        self.config = config
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

        if config.api_key:
            self.session.headers.update({"Authorization": f"Bearer {config.api_key}"})

    def _request(self, method: str, url: str, fallback: str, **kwargs) -> requests.Response:
        try:
            response = self.session.request(method, url, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{fallback}: {e}")
            raise StudioApiError(f"{fallback}: {e}") from e

        if not response.ok:
            message = read_api_error(response, fallback)
            logger.error(f"{method} {url} failed ({response.status_code}): {message}")
            raise StudioApiError(message, status_code=response.status_code)
        return response

    def send_message(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        input_params: Optional[Dict[str, Any]] = None,
    ) -> StudioResponse:
        """Run one conversation turn."""
        url = f"{self.config.studio_url}/message"
        payload = {
            "conversationId": conversation_id,
            "message": message,
            "inputParams": input_params or {},
        }
        response = self._request("POST", url, "Studio backend error", json=payload)
        result = StudioResponse.from_dict(response.json())
        logger.info(f"Turn completed: conversation={result.conversation_id} state={result.state}")
        return result

    def save_mappings(self, request: Any) -> MappingSaveResponse:
        """Persist a mapping snapshot."""
        url = f"{self.config.studio_url}/mappings/save"
        response = self._request("POST", url, "Save mappings failed", json=_body(request))
        return MappingSaveResponse.from_dict(response.json())

    def confirm_mappings(self, request: Any) -> MappingConfirmResponse:
        """Mark a mapping snapshot as confirmed."""
        url = f"{self.config.studio_url}/mappings/confirm"
        response = self._request("POST", url, "Confirm mappings failed", json=_body(request))
        return MappingConfirmResponse.from_dict(response.json())

    def export_workbook(self, request: Any) -> bytes:
        """Download the workbook rendering of a mapping snapshot."""
        url = f"{self.config.studio_url}/mappings/export"
        response = self._request("POST", url, "Export mappings failed", json=_body(request))
        return response.content

    def fetch_audit(self, conversation_id: str) -> List[AuditEvent]:
        """Audit trail of a conversation, oldest first."""
        url = f"{self.config.conversation_url}/audit/{conversation_id}"
        response = self._request("GET", url, "Audit API error")
        data = response.json()
        if not isinstance(data, list):
            return []
        return [AuditEvent.from_dict(row) for row in data if isinstance(row, dict)]

    def fetch_db_status(self) -> DbStatus:
        """Backend database status."""
        url = f"{self.config.studio_url}/admin/db/status"
        response = self._request("GET", url, "DB status API error")
        return DbStatus.from_dict(response.json())

    def initialize_db(self) -> None:
        """Ask the backend to (re)initialize its database."""
        url = f"{self.config.studio_url}/admin/db/init"
        self._request("POST", url, "DB init API error")
        logger.info("Backend database initialization requested")
