"""
CLI Utilities - Shared helper functions for command line operations.

Formatted printing plus the settings and snapshot loading every command
starts with.
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from ..config import Settings, load_settings
from ..core.errors import ConfigError, SnapshotError
from ..sources.snapshot import SnapshotSource, load_snapshot


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_info(message: str) -> None:
    """Print an informational message, dimmed."""
    click.echo(click.style(f"   {message}", dim=True))


def open_snapshot(
    snapshot_path: str,
    config_path: Optional[str] = None,
    instance_id: Optional[str] = None,
) -> Tuple[SnapshotSource, str, Settings]:
    """
    Load settings and validate the snapshot a command points at.

    Prints the problem and exits with status 1 when either cannot be loaded.

    Returns:
        Tuple of (source, instance id, settings).
    """
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as e:
        echo_error(f"Invalid configuration: {e}")
        sys.exit(1)

    path = Path(snapshot_path)
    try:
        data = load_snapshot(path)
    except SnapshotError as e:
        echo_error(str(e))
        sys.exit(1)

    resolved = instance_id or str(data.get("instanceId", ""))
    if not resolved:
        echo_error("No instance id: pass --instance or set instanceId in the snapshot")
        sys.exit(1)
    return SnapshotSource(path), resolved, settings
