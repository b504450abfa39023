"""
planscope CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

import click

from .commands import dashboard, graph


@click.group()
@click.version_option(package_name="planscope")
def main():
    """planscope: Deployment plan dashboard.

    Shows a deployment's resource dependency graph with live progress,
    and drills into Terraform and Helm resources for files, outputs,
    logs and operation history.

    \b
    Quick Start:
      planscope dashboard snapshot.yaml
      planscope graph snapshot.yaml --no-progress
    """
    pass


# Register commands
main.add_command(dashboard.dashboard)
main.add_command(graph.graph)

if __name__ == "__main__":
    main()
