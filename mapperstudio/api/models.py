"""Request/response models exchanged with the Mapper Studio backend."""
from dataclasses import dataclass
from typing import Any, Dict, Optional


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class StudioResponse:
    """Result of one conversation turn."""

    conversation_id: str
    intent: str = ""
    state: str = ""
    payload_type: str = "TEXT"
    payload: Any = None
    context_json: str = "{}"

    @property
    def is_error(self) -> bool:
        return self.state.upper() == "ERROR"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudioResponse":
        """Build from the backend JSON body."""
        context = data.get("contextJson", data.get("context_json", "{}"))
        return cls(
            conversation_id=str(data.get("conversationId") or data.get("conversation_id") or ""),
            intent=str(data.get("intent") or ""),
            state=str(data.get("state") or ""),
            payload_type=str(data.get("payloadType") or "TEXT"),
            payload=data.get("payload"),
            context_json=context if isinstance(context, str) else "{}",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "conversationId": self.conversation_id,
            "intent": self.intent,
            "state": self.state,
            "payloadType": self.payload_type,
            "payload": self.payload,
            "contextJson": self.context_json,
        }


@dataclass
class AuditEvent:
    """One row of a conversation's audit trail."""

    audit_id: Optional[int] = None
    conversation_id: Optional[str] = None
    stage: str = ""
    payload_json: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        """Build from camelCase or snake_case keys."""
        payload = data.get("payloadJson", data.get("payload_json"))
        return cls(
            audit_id=data.get("auditId", data.get("audit_id")),
            conversation_id=data.get("conversationId", data.get("conversation_id")),
            stage=str(data.get("stage") or ""),
            payload_json=payload if isinstance(payload, str) else None,
            created_at=data.get("createdAt", data.get("created_at")),
        )


@dataclass
class MappingSaveResponse:
    """Result of persisting a mapping snapshot."""

    project_code: str
    mapping_version: str
    saved_count: int = 0
    selected_count: int = 0
    saved_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingSaveResponse":
        return cls(
            project_code=str(data.get("projectCode") or ""),
            mapping_version=str(data.get("mappingVersion") or ""),
            saved_count=_int(data.get("savedCount")),
            selected_count=_int(data.get("selectedCount")),
            saved_at=str(data.get("savedAt") or ""),
        )


@dataclass
class MappingConfirmResponse:
    """Result of confirming a mapping snapshot."""

    project_code: str
    mapping_version: str
    confirmed: bool = False
    selected_count: int = 0
    confirmed_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingConfirmResponse":
        return cls(
            project_code=str(data.get("projectCode") or ""),
            mapping_version=str(data.get("mappingVersion") or ""),
            confirmed=bool(data.get("confirmed")),
            selected_count=_int(data.get("selectedCount")),
            confirmed_at=str(data.get("confirmedAt") or ""),
        )


@dataclass
class DbStatus:
    """Backend database status."""

    initialized: bool = False
    status: str = ""
    checked_at: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DbStatus":
        return cls(
            initialized=bool(data.get("initialized")),
            status=str(data.get("status") or ""),
            checked_at=str(data.get("checkedAt") or ""),
        )
