"""
Mapping Studio Session - one reviewer's conversation with the backend.

Ties the pieces together for a single owner:

    backend turn -> suggestions -> record store -> graph projection
                 -> reviewer gestures/table edits -> record store
                 -> confirmation gate -> save / confirm / export

All mutation happens on the caller's thread (or event loop); background
audit polling only hands finished results back through
``apply_audit_events``, which drops results for a conversation that is no
longer current. The session owns one poller, which follows the current
conversation and is cancelled whenever that conversation changes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from mapperstudio.api.audit_poller import AuditPoller
from mapperstudio.api.models import AuditEvent, MappingSaveResponse, StudioResponse
from mapperstudio.api.studio_client import StudioApiError, StudioClient
from mapperstudio.cli.mapping_table import MappingTableEditor
from mapperstudio.config import AppConfig, app_config
from mapperstudio.exporter.json_exporter import JsonExporter
from mapperstudio.exporter.snapshot import (
    MappingExportRequest,
    MappingExporter,
    build_export_request,
    is_generate_excel_command,
)
from mapperstudio.graph.controller import GraphEditController
from mapperstudio.mapper.mapping import MappingSuggestion, SourceType, TargetType
from mapperstudio.mapper.provenance import ProvenanceTracker
from mapperstudio.mapper.store import MappingRecordStore
from mapperstudio.suggestions.extractors import (
    parse_missing_targets,
    resolve_suggestions,
    suggestions_signature,
)
from mapperstudio.validator.mapping_validator import MappingValidator

logger = logging.getLogger(__name__)

EMPTY_SIGNATURE = suggestions_signature([])


@dataclass
class TurnInputs:
    """Source and target artifacts sent with a mapping turn."""

    source_spec: str = ""
    target_schema: str = ""
    target_schema_xsd: str = ""
    target_schema_wsdl: str = ""
    target_xsd_name: str = ""
    target_wsdl_name: str = ""
    target_xsd_list: List[Dict[str, str]] = field(default_factory=list)


def build_input_params(
    inputs: TurnInputs,
    source_type: SourceType,
    target_type: TargetType,
    project_code: str = "",
    mapping_version: str = "",
) -> Dict[str, Any]:
    """
    Input parameters for a mapping turn.

    Raises:
        ValueError: If the source spec or the target schema is missing, or
            an XSD+WSDL target lacks one of its two artifacts
    """
    source_type = SourceType(source_type)
    target_type = TargetType(target_type)
    source_spec = inputs.source_spec.strip()
    xsd = inputs.target_schema_xsd.strip()
    wsdl = inputs.target_schema_wsdl.strip()
    dual = target_type is TargetType.XSD_WSDL
    target_schema = (xsd or wsdl) if dual else inputs.target_schema.strip()

    if not source_spec or not target_schema:
        raise ValueError("Please provide both API input and target schema.")
    if dual and (not xsd or not wsdl):
        raise ValueError("Please provide both XSD and WSDL artifacts for XSD+WSDL mode.")

    if dual:
        schema_xsd = xsd
    elif target_type is TargetType.XSD:
        schema_xsd = target_schema
    else:
        schema_xsd = ""

    return {
        "source_payload_type": "XML" if source_type is SourceType.XML else "JSON",
        "target_payload_type": "JSON" if target_type.is_json else "XML",
        "projectCode": project_code.strip(),
        "mappingVersion": mapping_version.strip(),
        "sourceType": source_type.value,
        "targetType": target_type.value,
        "sourceSpec": source_spec,
        "targetSchema": target_schema,
        "targetSchemaJson": target_schema if target_type.is_json else "",
        "targetSchemaXsd": schema_xsd,
        "targetSchemaWsdl": wsdl if dual else "",
        "targetSchemaXsdName": inputs.target_xsd_name,
        "targetSchemaWsdlName": inputs.target_wsdl_name,
        "targetSchemaXsdList": [
            {"name": a.get("name", ""), "content": a.get("content", "")}
            for a in inputs.target_xsd_list
        ]
        if dual
        else [],
    }


class MappingStudioSession:
    """State of one mapping review conversation."""

    def __init__(
        self,
        client: Optional[StudioClient] = None,
        config: Optional[AppConfig] = None,
        source_type: Optional[SourceType] = None,
        target_type: Optional[TargetType] = None,
    ):
        """
        Initialize session.

        Args:
            client: Backend client (built from config when omitted)
            config: Application config (global instance by default)
            source_type: Declared source shape (config default when omitted)
            target_type: Declared target shape (config default when omitted)
        """
        self.config = config or app_config
        self.client = client or StudioClient(self.config.studio_api)
        self.source_type = SourceType(source_type or self.config.source_type)
        self.target_type = TargetType(target_type or self.config.target_type)
        self.project_code = self.config.project_code
        self.mapping_version = self.config.mapping_version

        self.tracker = ProvenanceTracker()
        self.store = MappingRecordStore(self.tracker)
        self.controller = GraphEditController(self.store, self.source_type, self.target_type)
        self.table = MappingTableEditor(self.store, self.source_type)
        self.exporter = MappingExporter(self.client, self.tracker)
        self.json_exporter = JsonExporter(Path(self.config.snapshot_dir))
        self.validator = MappingValidator()

        self.conversation_id: Optional[str] = None
        self.response: Optional[StudioResponse] = None
        self.audit_events: List[AuditEvent] = []
        self.missing_targets: List[str] = []
        self._suggestions_signature = EMPTY_SIGNATURE

        # (conversation_id, events, applied) after each polled audit trail
        self.on_audit_update: Optional[Callable[[str, List[AuditEvent], bool], None]] = None
        self.poller = AuditPoller(
            fetch=self.client.fetch_audit,
            on_events=self._receive_audit_events,
            interval=self.config.poll_interval,
        )

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    def set_shape_types(self, source_type: SourceType, target_type: TargetType) -> None:
        self.source_type = SourceType(source_type)
        self.target_type = TargetType(target_type)
        self.table.source_type = self.source_type
        self.controller.set_shape_types(self.source_type, self.target_type)

    # ------------------------------------------------------------------
    # Conversation turns
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget the conversation and every mapping."""
        self.poller.cancel()
        self.conversation_id = None
        self.response = None
        self.audit_events = []
        self.missing_targets = []
        self._suggestions_signature = EMPTY_SIGNATURE
        self.store.replace_all([])
        self.controller.set_missing_targets([])

    def run_turn(
        self,
        message: str,
        inputs: TurnInputs,
        reuse_conversation: bool = True,
    ) -> StudioResponse:
        """
        Send one message with the current artifacts and apply the answer.

        A fresh (non-reused) turn starts a new conversation and clears the
        mapping set first.

        Raises:
            ValueError: If the turn inputs are incomplete
            StudioApiError: If the backend call fails
        """
        params = build_input_params(
            inputs, self.source_type, self.target_type, self.project_code, self.mapping_version
        )
        if not reuse_conversation:
            self.reset()

        response = self.client.send_message(message, self.conversation_id, params)
        self.set_conversation(response.conversation_id or self.conversation_id)
        self.response = response

        if self.conversation_id:
            try:
                self.audit_events = self.client.fetch_audit(self.conversation_id)
            except StudioApiError as e:
                # polling picks it up later
                logger.warning(f"Initial audit fetch failed: {e}")

        self.apply_response(response)
        self.start_polling()
        if response.is_error:
            logger.warning(f"Backend reported an error state: {response.payload}")
        return response

    def send_chat(self, message: str, inputs: TurnInputs) -> Any:
        """
        Chat input: workbook shortcuts export, anything else is a turn.

        Raises:
            ValueError: On an empty message
        """
        message = (message or "").strip()
        if not message:
            raise ValueError("Please enter a message to send.")
        if is_generate_excel_command(message):
            return self.save_and_download()
        return self.run_turn(message, inputs)

    def apply_response(self, response: StudioResponse) -> bool:
        """Apply missing targets and suggestions of a response."""
        self.missing_targets = parse_missing_targets(response.context_json)
        self.controller.set_missing_targets(self.missing_targets)
        suggestions = resolve_suggestions(response.context_json, self.audit_events)
        return self.apply_suggestions(suggestions)

    def apply_audit_events(self, conversation_id: str, events: Sequence[AuditEvent]) -> bool:
        """
        Take a polled audit trail, if it belongs to the current conversation.

        Without a turn response (a conversation attached by id) the audit
        trail is the only suggestion source.

        Returns:
            True if the suggestions it carried replaced the mapping set
        """
        if conversation_id != self.conversation_id:
            logger.debug(f"Dropping audit events for stale conversation {conversation_id}")
            return False
        self.audit_events = list(events)
        context_json = self.response.context_json if self.response is not None else None
        suggestions = resolve_suggestions(context_json, self.audit_events)
        return self.apply_suggestions(suggestions)

    def apply_suggestions(self, suggestions: Sequence[MappingSuggestion]) -> bool:
        """
        Replace the mapping set, unless the suggestions did not change.

        Returns:
            True if the store was replaced
        """
        signature = suggestions_signature(suggestions)
        if signature == self._suggestions_signature:
            return False
        self._suggestions_signature = signature
        self.store.replace_all(suggestions)
        self.controller.refresh()
        logger.info(f"Applied {len(suggestions)} mapping suggestions")
        return True

    # ------------------------------------------------------------------
    # Audit polling
    # ------------------------------------------------------------------

    def set_conversation(self, conversation_id: Optional[str]) -> None:
        """
        Make ``conversation_id`` the current conversation.

        Switching away from another conversation resets the session, which
        also cancels its audit polling.
        """
        if conversation_id == self.conversation_id:
            return
        if self.conversation_id is not None:
            self.reset()
        self.conversation_id = conversation_id

    def start_polling(self) -> bool:
        """
        Poll the current conversation's audit trail in the background.

        Only possible from inside a running event loop.

        Returns:
            True if a poller is running for the current conversation
        """
        if not self.conversation_id:
            return False
        if self.poller.is_running and self.poller.conversation_id == self.conversation_id:
            return True
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, audit polling not started")
            return False
        self.poller.start(self.conversation_id)
        return True

    async def stop_polling(self) -> None:
        await self.poller.stop()

    def _receive_audit_events(self, conversation_id: str, events: List[AuditEvent]) -> None:
        applied = self.apply_audit_events(conversation_id, events)
        if self.on_audit_update is not None:
            self.on_audit_update(conversation_id, events, applied)

    # ------------------------------------------------------------------
    # Review and export
    # ------------------------------------------------------------------

    def validate(self) -> List[str]:
        return self.validator.validate(self.store.list(), self.missing_targets)

    def confirm(self) -> None:
        self.tracker.confirm()

    def export_request(self) -> MappingExportRequest:
        return build_export_request(
            self.store.list(),
            self.source_type,
            self.target_type,
            self.project_code,
            self.mapping_version,
        )

    def save(self) -> MappingSaveResponse:
        return self.exporter.save(self.export_request())

    def save_and_download(self, output_dir: Optional[Path] = None) -> Path:
        """Gated save, confirm and workbook download."""
        records = self.store.list()
        self.tracker.require_export_ready(records)
        return self.exporter.save_and_download(
            self.export_request(), records, output_dir or Path(self.config.output_dir)
        )

    def save_snapshot(self, output_file: Optional[Path] = None) -> Path:
        return self.json_exporter.export(self.export_request(), self.store.list(), output_file)

    def load_snapshot(self, snapshot_file: Path) -> int:
        """
        Replace the mapping set with a saved snapshot.

        Returns:
            Number of records loaded
        """
        metadata, records = self.json_exporter.load(snapshot_file)
        self.set_shape_types(metadata["source_type"], metadata["target_type"])
        self.project_code = metadata.get("project_code") or self.project_code
        self.mapping_version = metadata.get("mapping_version") or self.mapping_version
        self.store.replace_all(records)
        self.controller.refresh()
        return len(records)
