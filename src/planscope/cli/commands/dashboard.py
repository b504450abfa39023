"""
Dashboard Command.

Starts the interactive dashboard for one deployment instance.
"""

import logging
from pathlib import Path
from typing import Optional

import click

from ..utils import open_snapshot


@click.command()
@click.argument("snapshot", type=click.Path(dir_okay=False))
@click.option("--instance", "instance_id", default=None, help="Deployment instance id (defaults to the snapshot's)")
@click.option("-c", "--config", "config_path", default=None, help="Path to a planscope config file")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def dashboard(snapshot: str, instance_id: Optional[str], config_path: Optional[str], verbose: bool):
    """
    Open the interactive deployment dashboard.

    The dependency graph is shown with live progress; Enter drills into a
    Terraform or Helm resource. Logs go to the configured log file since
    the terminal belongs to the dashboard.
    """
    source, instance_id, settings = open_snapshot(snapshot, config_path, instance_id)

    log_file = Path(settings.log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # Textual is only needed once the dashboard actually runs
    from ...tui.app import run_dashboard

    run_dashboard(source, instance_id, settings)
