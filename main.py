#!/usr/bin/env python3
"""Mapper Studio - Entry point."""
import click
from colorama import Fore, Style, init

from mapperstudio import __version__
from mapperstudio.cli.interactive import InteractiveCLI
from mapperstudio.config import app_config
from mapperstudio.logging_config import setup_logging

# Initialize colorama
init(autoreset=True)


def print_banner():
    """Print application banner."""
    print(f"{Fore.CYAN}{'=' * 44}")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Mapper Studio{Fore.CYAN}                        ║")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Field Mapping Review Assistant{Fore.CYAN}       ║")
    print(f"{Fore.CYAN}{'=' * 44}{Style.RESET_ALL}")
    print()


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Logging level (default from config)")
@click.option("--log-file", type=click.Path(), default=None, help="Also log to this file")
def cli(log_level, log_file):
    """Mapper Studio - Review machine-suggested field mappings."""
    setup_logging(log_level or app_config.log_level, log_file)


@cli.command()
def review():
    """Start an interactive review session."""
    print_banner()

    cli_tool = InteractiveCLI()
    cli_tool.run()


@cli.command()
@click.option("--source", "source_file", type=click.Path(exists=True), required=True,
              help="Source spec (JSON or XML sample)")
@click.option("--target", "target_file", type=click.Path(exists=True), required=True,
              help="Target schema")
@click.option("--message", default="Start mapping studio.", help="Opening message")
@click.option("--review/--no-review", "then_review", default=True,
              help="Continue into the interactive menu")
def run(source_file, target_file, message, then_review):
    """Run one mapping turn from files."""
    print_banner()

    cli_tool = InteractiveCLI()
    click.echo(f"{Fore.GREEN}Loading {source_file} and {target_file}...")
    cli_tool.run_direct(source_file, target_file, message)
    if then_review:
        cli_tool.run()


@cli.command()
def list_snapshots():
    """List saved mapping snapshots."""
    print_banner()

    cli_tool = InteractiveCLI()
    cli_tool.list_snapshots()


@cli.command()
@click.argument("snapshot_name")
def load_snapshot(snapshot_name):
    """Load a saved snapshot and review it."""
    print_banner()

    cli_tool = InteractiveCLI()
    cli_tool.load_snapshot(snapshot_name)
    cli_tool.run()


@cli.command()
@click.argument("conversation_id")
@click.option("--duration", type=float, default=30.0, help="Seconds to keep polling")
@click.option("--review/--no-review", "then_review", default=False,
              help="Review the recovered mappings afterwards")
def watch_audit(conversation_id, duration, then_review):
    """Poll a conversation's audit trail for mapping suggestions."""
    print_banner()

    cli_tool = InteractiveCLI()
    cli_tool.watch_audit(conversation_id, duration)
    if then_review:
        cli_tool.run()


@cli.command()
def config_api():
    """Configure Mapper Studio API credentials."""
    print_banner()

    click.echo(f"{Fore.YELLOW}Mapper Studio API Configuration")
    click.echo(f"{Fore.YELLOW}{'=' * 30}")

    base_url = click.prompt("API Base URL", default=app_config.studio_api.base_url)
    api_key = click.prompt("API Key (token)", hide_input=True, default="")

    app_config.studio_api.base_url = base_url
    app_config.studio_api.api_key = api_key

    click.echo(f"{Fore.GREEN}✅ Configuration saved!")


if __name__ == "__main__":
    cli()
