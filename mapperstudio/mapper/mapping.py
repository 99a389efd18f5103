"""Mapping record model."""
import logging
import math
import uuid
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional

from mapperstudio.paths import PathType, to_canonical

logger = logging.getLogger(__name__)


class TransformType(str, Enum):
    """How a source value becomes the target value."""

    DIRECT = "DIRECT"
    EXPRESSION = "EXPRESSION"
    ENUM_MAP = "ENUM_MAP"
    LOOKUP = "LOOKUP"
    CONDITIONAL = "CONDITIONAL"

    @classmethod
    def parse(cls, value: Any) -> "TransformType":
        """Resolve a transform name, falling back to DIRECT."""
        if isinstance(value, TransformType):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            logger.debug(f"Unknown transform type {value!r}, using DIRECT")
            return cls.DIRECT


class MappingOrigin(str, Enum):
    """Provenance of a mapping record."""

    LLM_DERIVED = "LLM_DERIVED"
    EDITED = "EDITED"

    @classmethod
    def resolve(cls, raw_origin: Any, manual_override: bool) -> "MappingOrigin":
        """Explicit origin wins; otherwise derive it from the override flag."""
        if isinstance(raw_origin, MappingOrigin):
            return raw_origin
        if raw_origin is not None and str(raw_origin).strip():
            try:
                return cls(str(raw_origin).strip().upper())
            except ValueError:
                logger.debug(f"Unknown mapping origin {raw_origin!r}, deriving from override flag")
        return cls.EDITED if manual_override else cls.LLM_DERIVED


class SourceType(str, Enum):
    """Shape of the mapping source."""

    JSON = "JSON"
    XML = "XML"
    DATABASE = "DATABASE"

    @property
    def path_type(self) -> PathType:
        """Notation used to display source paths."""
        return PathType.XML_PATH if self is SourceType.XML else PathType.JSON_PATH


class TargetType(str, Enum):
    """Shape of the mapping target."""

    JSON = "JSON"
    JSON_SCHEMA = "JSON_SCHEMA"
    XML = "XML"
    XSD = "XSD"
    XSD_WSDL = "XSD+WSDL"

    @property
    def is_json(self) -> bool:
        return self in (TargetType.JSON, TargetType.JSON_SCHEMA)

    @property
    def path_type(self) -> PathType:
        """Notation used to display target paths."""
        return PathType.JSON_PATH if self.is_json else PathType.XML_PATH


class ArtifactType(str, Enum):
    """Kind of a target artifact in multi-artifact targets."""

    XSD = "XSD"
    WSDL = "WSDL"
    JSON_SCHEMA = "JSON_SCHEMA"
    JSON = "JSON"
    XML = "XML"


def safe_confidence(value: Any) -> float:
    """Coerce a confidence to float; unusable values become 0.0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def new_record_id(prefix: str = "mapping") -> str:
    """Fresh opaque record identifier."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class MappingSuggestion:
    """One machine-suggested correspondence, as received from the backend."""

    source_path: str
    target_path: str
    confidence: float = 0.0
    transform_type: TransformType = TransformType.DIRECT
    reason: str = ""
    target_artifact_name: Optional[str] = None
    target_artifact_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingSuggestion":
        """Build from a camelCase or snake_case payload object."""
        return cls(
            source_path=str(_first(data, "sourcePath", "source_path", default="")),
            target_path=str(_first(data, "targetPath", "target_path", default="")),
            confidence=safe_confidence(_first(data, "confidence", default=0.0)),
            transform_type=TransformType.parse(
                _first(data, "transformType", "transform_type", default="DIRECT")
            ),
            reason=str(_first(data, "reason", default="")),
            target_artifact_name=_first(data, "targetArtifactName", "target_artifact_name"),
            target_artifact_type=_first(data, "targetArtifactType", "target_artifact_type"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sourcePath": self.source_path,
            "targetPath": self.target_path,
            "confidence": self.confidence,
            "transformType": self.transform_type.value,
            "reason": self.reason,
            "targetArtifactName": self.target_artifact_name,
            "targetArtifactType": self.target_artifact_type,
        }


@dataclass(frozen=True)
class MappingRecord:
    """
    One candidate or confirmed source-to-target field correspondence.

    Records are immutable; the store swaps in updated copies so earlier
    snapshots of the record list stay valid.
    """

    id: str
    source_path: str = ""
    target_path: str = ""
    confidence: float = 0.0
    transform_type: TransformType = TransformType.DIRECT
    reason: str = ""
    notes: str = ""
    selected: bool = True
    mapping_origin: MappingOrigin = MappingOrigin.LLM_DERIVED
    manual_override: bool = False
    target_artifact_name: Optional[str] = None
    target_artifact_type: Optional[str] = None

    @classmethod
    def from_suggestion(
        cls, suggestion: MappingSuggestion, record_id: Optional[str] = None
    ) -> "MappingRecord":
        """Fresh, selected, machine-derived record for a suggestion."""
        return cls(
            id=record_id or new_record_id("llm"),
            source_path=to_canonical(suggestion.source_path),
            target_path=to_canonical(suggestion.target_path),
            confidence=suggestion.confidence,
            transform_type=suggestion.transform_type,
            reason=suggestion.reason,
            selected=True,
            mapping_origin=MappingOrigin.LLM_DERIVED,
            manual_override=False,
            target_artifact_name=suggestion.target_artifact_name,
            target_artifact_type=suggestion.target_artifact_type,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingRecord":
        """Rebuild a record from its dictionary form (snapshot files)."""
        manual_override = bool(_first(data, "manualOverride", "manual_override", default=False))
        return cls(
            id=str(_first(data, "id", default="") or new_record_id("loaded")),
            source_path=to_canonical(_first(data, "sourcePath", "source_path", default="")),
            target_path=to_canonical(_first(data, "targetPath", "target_path", default="")),
            confidence=safe_confidence(_first(data, "confidence", default=0.0)),
            transform_type=TransformType.parse(
                _first(data, "transformType", "transform_type", default="DIRECT")
            ),
            reason=str(_first(data, "reason", default="")),
            notes=str(_first(data, "notes", default="")),
            selected=_first(data, "selected", default=True) is not False,
            mapping_origin=MappingOrigin.resolve(
                _first(data, "mappingOrigin", "mapping_origin"), manual_override
            ),
            manual_override=manual_override,
            target_artifact_name=_first(data, "targetArtifactName", "target_artifact_name"),
            target_artifact_type=_first(data, "targetArtifactType", "target_artifact_type"),
        )

    @property
    def canonical_source(self) -> str:
        return to_canonical(self.source_path)

    @property
    def canonical_target(self) -> str:
        return to_canonical(self.target_path)

    @property
    def is_active(self) -> bool:
        """Selected and wired on both sides; only active records become edges."""
        return self.selected is not False and bool(self.canonical_source) and bool(
            self.canonical_target
        )

    @property
    def display_confidence(self) -> float:
        """Confidence for display; anything outside [0, 1] shows as 0."""
        value = safe_confidence(self.confidence)
        return value if 0.0 <= value <= 1.0 else 0.0

    @property
    def confidence_band(self) -> str:
        """'high', 'mid' or 'low'."""
        value = self.display_confidence
        if value >= 0.8:
            return "high"
        if value >= 0.7:
            return "mid"
        return "low"

    @property
    def is_edited(self) -> bool:
        return self.mapping_origin is MappingOrigin.EDITED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "sourcePath": self.source_path,
            "targetPath": self.target_path,
            "confidence": self.confidence,
            "transformType": self.transform_type.value,
            "reason": self.reason,
            "notes": self.notes,
            "selected": self.selected,
            "mappingOrigin": self.mapping_origin.value,
            "manualOverride": self.manual_override,
            "targetArtifactName": self.target_artifact_name,
            "targetArtifactType": self.target_artifact_type,
        }


EDITABLE_FIELDS = frozenset(
    f.name for f in fields(MappingRecord) if f.name not in ("id", "mapping_origin", "manual_override")
)
