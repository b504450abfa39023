"""
Graph Command - Print the deployment plan once.

Builds the plan graph from a snapshot, overlays progress from both feeds
unless told not to, and prints the rendered canvas to stdout.
"""

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console

from ...core.errors import GraphBuildError
from ...core.graph import GraphBuilder, load_plan_graph
from ...layout.render import RenderState, header_line, render_plan
from ...progress.aggregator import ProgressAggregator, ProgressState
from ..utils import echo_error, echo_info, open_snapshot


@click.command()
@click.argument("snapshot", type=click.Path(dir_okay=False))
@click.option("--instance", "instance_id", default=None, help="Deployment instance id (defaults to the snapshot's)")
@click.option("-c", "--config", "config_path", default=None, help="Path to a planscope config file")
@click.option("-w", "--width", default=120, show_default=True, help="Width used to wrap warnings")
@click.option("--no-progress", is_flag=True, help="Skip the progress overlay")
def graph(snapshot: str, instance_id: Optional[str], config_path: Optional[str], width: int, no_progress: bool):
    """
    Render the deployment plan graph to the terminal.

    \b
    Example:
      planscope graph snapshot.yaml --width 160
    """
    source, instance_id, settings = open_snapshot(snapshot, config_path, instance_id)
    builder = GraphBuilder(settings.hidden_substrings)

    try:
        plan = asyncio.run(load_plan_graph(source, instance_id, builder))
    except GraphBuildError as e:
        echo_error(str(e))
        sys.exit(1)

    progress = ProgressState()
    warnings = []
    if not no_progress:
        aggregator = ProgressAggregator(source, source, instance_id)
        warnings = progress.apply(asyncio.run(aggregator.collect(plan)))

    state = RenderState(
        progress=progress.merged if progress.resolved else None,
        width=width,
        extra_warnings=warnings,
    )
    rendered = render_plan(plan, state)

    console = Console(width=max(width, rendered.layout.width if rendered.layout else width))
    console.print(header_line(instance_id, progress.workflow_id))
    console.print()
    for line in rendered.lines:
        console.print(line, no_wrap=True, crop=True)

    echo_info(f"{plan.node_count} resources, {plan.edge_count} dependencies, {len(plan.levels)} levels")
