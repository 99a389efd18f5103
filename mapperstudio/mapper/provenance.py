"""Selection, provenance and the manual-confirmation gate."""
import logging
from typing import Dict, List, Sequence

from mapperstudio.mapper.mapping import MappingOrigin, MappingRecord

logger = logging.getLogger(__name__)


class ConfirmationRequiredError(RuntimeError):
    """Export or confirm attempted before the reviewer confirmed the mappings."""


class ProvenanceTracker:
    """
    Tracks the document-level "manually confirmed" gate.

    The gate is set only by an explicit reviewer action and drops back to
    False whenever the record list is replaced or edited. Export and
    confirm calls must pass ``require_export_ready`` first.
    """

    def __init__(self):
        """Initialize tracker."""
        self.manual_confirmed = False

    def confirm(self) -> None:
        """Reviewer confirms the current mapping set."""
        self.manual_confirmed = True
        logger.info("Mappings manually confirmed")

    def revoke(self) -> None:
        """Reviewer withdraws the confirmation."""
        self.manual_confirmed = False

    def reset(self) -> None:
        """Wholesale replacement of the record list."""
        if self.manual_confirmed:
            logger.debug("Confirmation reset: record list replaced")
        self.manual_confirmed = False

    def invalidate(self) -> None:
        """A record was edited after confirmation."""
        if self.manual_confirmed:
            logger.info("Confirmation cleared: mappings changed after confirmation")
        self.manual_confirmed = False

    def is_export_ready(self, records: Sequence[MappingRecord]) -> bool:
        """True when export may proceed."""
        return self.manual_confirmed is True and len(records) > 0

    def require_export_ready(self, records: Sequence[MappingRecord]) -> None:
        """
        Refuse export locally unless confirmed and non-empty.

        Raises:
            ConfirmationRequiredError: If the gate is closed or there is
                nothing to export
        """
        if len(records) == 0:
            raise ConfirmationRequiredError("No mappings available to export.")
        if self.manual_confirmed is not True:
            raise ConfirmationRequiredError("Manual confirmation is required before export.")

    @staticmethod
    def selected(records: Sequence[MappingRecord]) -> List[MappingRecord]:
        """Records still in play (``selected`` not False)."""
        return [r for r in records if r.selected is not False]

    @staticmethod
    def summary(records: Sequence[MappingRecord]) -> Dict[str, int]:
        """Counts by selection and origin."""
        return {
            "total": len(records),
            "selected": sum(1 for r in records if r.selected is not False),
            "edited": sum(1 for r in records if r.mapping_origin is MappingOrigin.EDITED),
            "llm_derived": sum(
                1 for r in records if r.mapping_origin is MappingOrigin.LLM_DERIVED
            ),
        }
