"""Interactive CLI for Mapper Studio."""
import asyncio
from pathlib import Path
from typing import List, Optional

import click
from colorama import Fore, Style

from mapperstudio.api.models import AuditEvent
from mapperstudio.api.studio_client import StudioApiError
from mapperstudio.cli.mapping_table import parse_row_selection
from mapperstudio.graph.models import GraphNode, NodeRole
from mapperstudio.mapper.mapping import SourceType, TargetType
from mapperstudio.mapper.provenance import ConfirmationRequiredError
from mapperstudio.session import MappingStudioSession, TurnInputs


def _read_artifact(label: str, default: str = "") -> str:
    """Prompt for a file path and return its text ("" when skipped)."""
    path = click.prompt(f"{label} file (ENTER to skip)", default=default, show_default=False).strip()
    if not path:
        return ""
    try:
        return Path(path).read_text()
    except OSError as e:
        click.echo(f"{Fore.RED}Cannot read {path}: {e}")
        return ""


class InteractiveCLI:
    """Interactive CLI interface."""

    def __init__(self, session: Optional[MappingStudioSession] = None):
        """Initialize CLI."""
        self.session = session or MappingStudioSession()
        self.inputs = TurnInputs()

    def print_header(self, title: str):
        """Print a section header."""
        print(f"\n{Fore.CYAN}{'━' * 45}")
        print(f"{Fore.CYAN}{title}")
        print(f"{Fore.CYAN}{'━' * 45}{Style.RESET_ALL}\n")

    def run(self):
        """Run interactive CLI."""
        while True:
            self.print_header("Main Menu")
            click.echo(f"Conversation: {self.session.conversation_id or 'none'}")
            click.echo(f"Mappings: {len(self.session.store)}  "
                       f"Confirmed: {'yes' if self.session.tracker.manual_confirmed else 'no'}\n")
            click.echo("1. New Mapping Turn")
            click.echo("2. Send Message")
            click.echo("3. Mapping Table")
            click.echo("4. Flow Editor")
            click.echo("5. Review & Confirm")
            click.echo("6. Save Mappings")
            click.echo("7. Save & Download Workbook")
            click.echo("8. Save Snapshot")
            click.echo("9. Load Snapshot")
            click.echo("10. Backend Database")
            click.echo("11. Exit\n")

            choice = click.prompt("Choose", type=int, default=1)

            if choice == 1:
                self.new_turn()
            elif choice == 2:
                self.send_message()
            elif choice == 3:
                self.edit_table()
            elif choice == 4:
                self.flow_editor()
            elif choice == 5:
                self.review_and_confirm()
            elif choice == 6:
                self.save_mappings()
            elif choice == 7:
                self.save_and_download()
            elif choice == 8:
                self.save_snapshot()
            elif choice == 9:
                self.load_snapshot(None)
            elif choice == 10:
                self.database_admin()
            elif choice == 11:
                click.echo(f"{Fore.YELLOW}Goodbye!")
                break
            else:
                click.echo(f"{Fore.RED}Invalid choice")

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def _prompt_inputs(self):
        """Ask for shape types and artifacts."""
        source_type = click.prompt(
            "Source type",
            type=click.Choice([t.value for t in SourceType]),
            default=self.session.source_type.value,
        )
        target_type = click.prompt(
            "Target type",
            type=click.Choice([t.value for t in TargetType]),
            default=self.session.target_type.value,
        )
        self.session.set_shape_types(SourceType(source_type), TargetType(target_type))
        self.session.project_code = click.prompt("Project code", default=self.session.project_code)
        self.session.mapping_version = click.prompt(
            "Mapping version", default=self.session.mapping_version
        )

        inputs = TurnInputs(source_spec=_read_artifact("Source spec"))
        if self.session.target_type is TargetType.XSD_WSDL:
            inputs.target_schema_xsd = _read_artifact("Target XSD")
            inputs.target_schema_wsdl = _read_artifact("Target WSDL")
        else:
            inputs.target_schema = _read_artifact("Target schema")
        self.inputs = inputs

    def new_turn(self, message: str = "Start mapping studio."):
        """Start a fresh conversation."""
        self.print_header("New Mapping Turn")
        self._prompt_inputs()
        self._run_turn(message, reuse_conversation=False)

    def run_direct(self, source_file: str, target_file: str, message: str):
        """Run one fresh turn from files, then show the result."""
        self.inputs = TurnInputs(
            source_spec=Path(source_file).read_text(),
            target_schema=Path(target_file).read_text(),
        )
        self._run_turn(message, reuse_conversation=False)
        self.show_graph()

    def _run_turn(self, message: str, reuse_conversation: bool = True):
        try:
            click.echo(f"{Fore.CYAN}Sending to {self.session.config.studio_api.studio_url}...")
            response = self.session.run_turn(message, self.inputs, reuse_conversation)
        except ValueError as e:
            click.echo(f"{Fore.RED}{e}")
            return
        except StudioApiError as e:
            click.echo(f"{Fore.RED}❌ Request failed: {e}")
            return

        if response.is_error:
            click.echo(f"{Fore.RED}Backend reported an error: {response.payload}")
        else:
            click.echo(f"{Fore.GREEN}✅ Response received ({response.intent or 'no intent'})")
        if response.payload:
            click.echo(f"{Style.DIM}{response.payload}{Style.RESET_ALL}")
        click.echo(f"   Mappings: {len(self.session.store)}")
        click.echo(f"   Missing required targets: {len(self.session.missing_targets)}")

    def send_message(self):
        """Continue the conversation (or trigger a workbook shortcut)."""
        self.print_header("Send Message")
        message = click.prompt("Message", default="", show_default=False)
        try:
            result = self.session.send_chat(message, self.inputs)
        except ConfirmationRequiredError as e:
            click.echo(f"{Fore.YELLOW}{e}")
            return
        except ValueError as e:
            click.echo(f"{Fore.RED}{e}")
            return
        except StudioApiError as e:
            click.echo(f"{Fore.RED}❌ Request failed: {e}")
            return

        if isinstance(result, Path):
            click.echo(f"{Fore.GREEN}✅ XLSX generated and downloaded: {result}")
        else:
            click.echo(f"{Fore.GREEN}✅ Response received")
            click.echo(f"   Mappings: {len(self.session.store)}")

    # ------------------------------------------------------------------
    # Mapping table
    # ------------------------------------------------------------------

    def edit_table(self):
        """Edit mappings row by row."""
        table = self.session.table

        while True:
            self.print_header("Mapping Table")
            table.show()
            click.echo("\n1. Toggle use   2. Edit source path   3. Rename source field")
            click.echo("4. Edit target   5. Edit notes         6. Set transform")
            click.echo("7. Add row       8. Remove rows        9. Back\n")

            choice = click.prompt("Choose", type=int, default=9)
            if choice == 9:
                break
            if choice == 7:
                table.add_row()
                continue

            rows = self._prompt_rows(multiple=choice in (1, 8))
            if not rows:
                continue
            try:
                if choice == 1:
                    for idx in rows:
                        table.toggle_use(idx)
                elif choice == 2:
                    table.set_source_path(rows[0], click.prompt("Source path"))
                elif choice == 3:
                    table.rename_source_field(rows[0], click.prompt("Source field"))
                elif choice == 4:
                    table.set_target_field(rows[0], click.prompt("Target field"))
                elif choice == 5:
                    table.set_notes(rows[0], click.prompt("Notes", default="", show_default=False))
                elif choice == 6:
                    transform = click.prompt(
                        "Transform",
                        type=click.Choice(["DIRECT", "EXPRESSION", "ENUM_MAP", "LOOKUP", "CONDITIONAL"]),
                    )
                    table.set_transform(rows[0], transform)
                elif choice == 8:
                    removed = table.remove_rows(rows)
                    click.echo(f"{Fore.YELLOW}Removed {len(removed)} row(s)")
                else:
                    click.echo(f"{Fore.RED}Invalid choice")
            except (IndexError, ValueError) as e:
                click.echo(f"{Fore.RED}{e}")

        self.session.controller.refresh()

    def _prompt_rows(self, multiple: bool) -> List[int]:
        hint = "Rows (1,3,5 or all)" if multiple else "Row"
        selection = click.prompt(hint, default="", show_default=False)
        try:
            rows = parse_row_selection(selection, len(self.session.store))
        except ValueError as e:
            click.echo(f"{Fore.RED}{e}")
            return []
        return rows if multiple else rows[:1]

    # ------------------------------------------------------------------
    # Flow editor
    # ------------------------------------------------------------------

    def show_graph(self):
        """Print the projected nodes and edges."""
        projection = self.session.controller.refresh()
        sources = projection.nodes_for(NodeRole.SOURCE)
        targets = projection.nodes_for(NodeRole.TARGET)

        click.echo(f"{Fore.CYAN}Sources:")
        for i, node in enumerate(sources, 1):
            click.echo(f"  S{i}. {node.label:25s} {Style.DIM}{node.path_label}{Style.RESET_ALL}")
        click.echo(f"{Fore.CYAN}Targets:")
        for i, node in enumerate(targets, 1):
            flag = f" {Fore.RED}[missing]{Fore.RESET}" if node.missing else ""
            click.echo(f"  T{i}. {node.label:25s} {Style.DIM}{node.path_label}{Style.RESET_ALL}{flag}")
        click.echo(f"{Fore.CYAN}Edges:")
        for i, edge in enumerate(projection.edges, 1):
            source = projection.node(edge.source)
            target = projection.node(edge.target)
            click.echo(f"  E{i}. {source.label} → {target.label}  ({edge.label})")

    def _pick_node(self, role: NodeRole, label: str) -> Optional[GraphNode]:
        nodes = self.session.controller.projection.nodes_for(role)
        choice = click.prompt(label, type=int, default=0)
        if 1 <= choice <= len(nodes):
            return nodes[choice - 1]
        click.echo(f"{Fore.RED}Invalid choice")
        return None

    def _pick_edge_id(self) -> Optional[str]:
        edges = self.session.controller.projection.edges
        choice = click.prompt("Edge number", type=int, default=0)
        if 1 <= choice <= len(edges):
            return edges[choice - 1].id
        click.echo(f"{Fore.RED}Invalid choice")
        return None

    def flow_editor(self):
        """Edit mappings through the node/edge view."""
        controller = self.session.controller

        while True:
            self.print_header("Flow Editor")
            self.show_graph()
            click.echo("\n1. Connect        2. Disconnect      3. Rename source")
            click.echo("4. Rename target  5. Add source      6. Delete source")
            click.echo("7. Back\n")

            choice = click.prompt("Choose", type=int, default=7)

            if choice == 1:
                source = self._pick_node(NodeRole.SOURCE, "Source number")
                target = self._pick_node(NodeRole.TARGET, "Target number") if source else None
                if source and target and controller.connect(source.id, target.id):
                    click.echo(f"{Fore.GREEN}Connected {source.path} → {target.path}")
            elif choice == 2:
                edge_id = self._pick_edge_id()
                if edge_id and controller.disconnect(edge_id):
                    click.echo(f"{Fore.YELLOW}Disconnected")
            elif choice in (3, 4):
                role = NodeRole.SOURCE if choice == 3 else NodeRole.TARGET
                node = self._pick_node(role, f"{role.value.title()} number")
                if node:
                    new_id = controller.rename_node(node.id, click.prompt("New field name"))
                    renamed = controller.projection.node(new_id) if new_id else None
                    if renamed:
                        click.echo(f"{Fore.GREEN}Renamed to {renamed.path}")
                    else:
                        click.echo(f"{Fore.YELLOW}Nothing renamed")
            elif choice == 5:
                path = controller.add_unattached_source()
                click.echo(f"{Fore.GREEN}Added {path}")
            elif choice == 6:
                node = self._pick_node(NodeRole.SOURCE, "Source number")
                if node:
                    controller.select_node(node.id)
                    if controller.delete_selection():
                        click.echo(f"{Fore.YELLOW}Removed {node.path}")
                    else:
                        click.echo(f"{Fore.RED}Disconnect its edges first")
            elif choice == 7:
                break
            else:
                click.echo(f"{Fore.RED}Invalid choice")

    # ------------------------------------------------------------------
    # Review and export
    # ------------------------------------------------------------------

    def review_and_confirm(self):
        """Show review issues and set the confirmation gate."""
        self.print_header("Review & Confirm")

        summary = self.session.tracker.summary(self.session.store.list())
        click.echo(f"   Total: {summary['total']}")
        click.echo(f"   Selected: {summary['selected']}")
        click.echo(f"   Edited: {summary['edited']}")
        click.echo(f"   LLM derived: {summary['llm_derived']}")

        errors = self.session.validate()
        click.echo(f"   Issues: {len(errors)}")
        if errors:
            click.echo(f"\n{Fore.YELLOW}Issues:")
            for error in errors[:10]:
                click.echo(f"   • {error}")
            if len(errors) > 10:
                click.echo(f"   ... and {len(errors) - 10} more")

        if self.session.tracker.manual_confirmed:
            if click.confirm("Mappings are confirmed. Withdraw confirmation?", default=False):
                self.session.tracker.revoke()
            return
        if click.confirm("Confirm these mappings for export?", default=not errors):
            self.session.confirm()
            click.echo(f"{Fore.GREEN}✅ Mappings confirmed")

    def save_mappings(self):
        """Save mappings to the backend."""
        self.print_header("Save Mappings")
        try:
            result = self.session.save()
            click.echo(f"{Fore.GREEN}✅ Saved {result.saved_count} mappings")
            click.echo(f"   Project {result.project_code} v{result.mapping_version}")
        except ValueError as e:
            click.echo(f"{Fore.YELLOW}{e}")
        except StudioApiError as e:
            click.echo(f"{Fore.RED}❌ Save failed: {e}")

    def save_and_download(self):
        """Save, confirm and download the workbook."""
        self.print_header("Save & Download Workbook")
        try:
            output_file = self.session.save_and_download()
            click.echo(f"{Fore.GREEN}✅ Mappings confirmed, saved, and XLSX downloaded")
            click.echo(f"{Fore.GREEN}   {output_file}")
        except ConfirmationRequiredError as e:
            click.echo(f"{Fore.YELLOW}{e}")
            click.echo(f"{Fore.YELLOW}Use 'Review & Confirm' and try again.")
        except StudioApiError as e:
            click.echo(f"{Fore.RED}❌ Export failed: {e}")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(self):
        """Write the current mappings to a local snapshot."""
        if not len(self.session.store):
            click.echo(f"{Fore.YELLOW}No mappings to save")
            return
        output_file = self.session.save_snapshot()
        click.echo(f"{Fore.GREEN}✅ Snapshot saved: {output_file}")

    def load_snapshot(self, snapshot_name: Optional[str] = None):
        """Load a saved snapshot."""
        self.print_header("Load Snapshot")

        snapshot_files = self.session.json_exporter.list_snapshots()
        if snapshot_name:
            snapshot_file = Path(snapshot_name)
        else:
            if not snapshot_files:
                click.echo(f"{Fore.YELLOW}No snapshots found")
                return
            for i, f in enumerate(snapshot_files, 1):
                click.echo(f"{i}. {f.name}")
            choice = click.prompt("Select snapshot", type=int, default=1)
            if not 1 <= choice <= len(snapshot_files):
                click.echo(f"{Fore.RED}Invalid choice")
                return
            snapshot_file = snapshot_files[choice - 1]

        try:
            count = self.session.load_snapshot(snapshot_file)
        except (OSError, ValueError) as e:
            click.echo(f"{Fore.RED}Cannot load snapshot: {e}")
            return

        click.echo(f"{Fore.GREEN}Loaded: {snapshot_file.name}")
        click.echo(f"   Mappings: {count}")
        click.echo(f"   Project {self.session.project_code} v{self.session.mapping_version}")

    def list_snapshots(self):
        """List all saved snapshots."""
        self.print_header("Saved Snapshots")

        snapshot_files = self.session.json_exporter.list_snapshots()
        if not snapshot_files:
            click.echo(f"{Fore.YELLOW}No snapshots found")
            return

        for f in snapshot_files:
            size = f.stat().st_size / 1024
            click.echo(f"{f.name} ({size:.1f} KB)")

    # ------------------------------------------------------------------
    # Backend
    # ------------------------------------------------------------------

    def database_admin(self):
        """Show backend DB status and optionally initialize it."""
        self.print_header("Backend Database")
        client = self.session.client
        try:
            status = client.fetch_db_status()
            color = Fore.GREEN if status.initialized else Fore.YELLOW
            click.echo(f"{color}Status: {status.status or 'unknown'} (checked {status.checked_at})")
            if not status.initialized and click.confirm("Initialize database now?", default=False):
                client.initialize_db()
                click.echo(f"{Fore.GREEN}✅ Initialization requested")
        except StudioApiError as e:
            click.echo(f"{Fore.RED}❌ {e}")

    def watch_audit(self, conversation_id: str, duration: float):
        """
        Follow a conversation's audit trail for ``duration`` seconds.

        New events are printed; suggestions found in the trail replace the
        session's mapping set.
        """
        self.print_header(f"Audit: {conversation_id}")
        seen = set()

        def on_update(cid: str, events: List[AuditEvent], applied: bool):
            for event in events:
                key = (event.audit_id, event.stage, event.created_at)
                if key in seen:
                    continue
                seen.add(key)
                click.echo(f"{Fore.CYAN}{event.created_at or '-'}  {Fore.WHITE}{event.stage}")
            if applied:
                click.echo(f"{Fore.GREEN}Suggestions updated: {len(self.session.store)} mappings")

        def on_error(cid: str, error: Exception):
            click.echo(f"{Fore.RED}Audit fetch failed: {error}")

        self.session.set_conversation(conversation_id)
        self.session.on_audit_update = on_update
        self.session.poller.on_error = on_error

        async def watch():
            self.session.start_polling()
            try:
                await asyncio.sleep(duration)
            finally:
                await self.session.stop_polling()

        try:
            asyncio.run(watch())
        except KeyboardInterrupt:
            click.echo(f"{Fore.YELLOW}Stopped")
        finally:
            self.session.on_audit_update = None
            self.session.poller.on_error = None
        click.echo(f"{Fore.GREEN}{len(seen)} audit event(s) seen")
        click.echo(f"   Mappings: {len(self.session.store)}")
