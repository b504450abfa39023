"""
Progress Aggregator - Merges the workflow and infra progress feeds.

A refresh fetches both feeds concurrently and returns only once both have
resolved, so a half-applied overlay is never rendered. Collection runs in a
background task and returns plain values; the merged overlay itself lives
in `ProgressState`, which only the UI loop mutates.

Merge rule: workflow progress is the base, and infra progress overwrites
it for every node it covers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..core.errors import SourceError
from ..core.graph import PlanGraph
from ..core.identifiers import ProgressIndex
from ..core.result import Err, Ok, Result
from ..sources.base import InfraSource, WorkflowSource
from .infra import build_infra_index
from .workflow import build_workflow_index

logger = logging.getLogger(__name__)


@dataclass
class WorkflowProgress:
    index: ProgressIndex
    workflow_id: str = ""


@dataclass
class ProgressRefresh:
    """Both feeds' results for one refresh cycle."""
    workflow: Result[WorkflowProgress, SourceError]
    infra: Result[ProgressIndex, SourceError]


def merge_progress(workflow: Optional[ProgressIndex], infra: Optional[ProgressIndex]) -> ProgressIndex:
    """Workflow progress overlaid with infra progress."""
    merged = ProgressIndex()
    if workflow is not None:
        merged.merge(workflow)
    if infra is not None:
        merged.merge(infra)
    return merged


class ProgressAggregator:
    """Fetches both progress feeds for one deployment instance."""

    def __init__(self, workflow_source: WorkflowSource, infra_source: InfraSource, instance_id: str):
        self.workflow_source = workflow_source
        self.infra_source = infra_source
        self.instance_id = instance_id

    async def fetch_workflow(self) -> Result[WorkflowProgress, SourceError]:
        result = await self.workflow_source.fetch_workflow(self.instance_id)
        if result.is_err():
            logger.warning(f"Workflow progress unavailable: {result.error}")
            return result
        snapshot = result.value
        return Ok(WorkflowProgress(index=build_workflow_index(snapshot), workflow_id=snapshot.workflow_id))

    async def fetch_infra(self, graph: PlanGraph) -> Result[ProgressIndex, SourceError]:
        result = await self.infra_source.fetch_progress_records(self.instance_id)
        if result.is_err():
            logger.warning(f"Infra progress unavailable: {result.error}")
            return result
        return Ok(build_infra_index(graph, result.value, self.instance_id))

    async def collect(self, graph: PlanGraph) -> ProgressRefresh:
        """Fetch both feeds concurrently; resolves when both have."""
        workflow, infra = await asyncio.gather(self.fetch_workflow(), self.fetch_infra(graph))
        return ProgressRefresh(workflow=workflow, infra=infra)


@dataclass
class ProgressState:
    """
    The dashboard's merged progress overlay.

    Keeps the last good index from each feed so a failed fetch leaves the
    previous overlay in place until the next cycle.
    """
    workflow: Optional[ProgressIndex] = None
    infra: Optional[ProgressIndex] = None
    workflow_id: str = ""
    merged: ProgressIndex = field(default_factory=ProgressIndex)
    resolved: bool = False

    def apply(self, refresh: ProgressRefresh) -> List[str]:
        """
        Fold a refresh into the overlay.

        Returns:
            List[str]: Warnings for feeds that failed this cycle.
        """
        warnings = []
        match refresh.workflow:
            case Ok(value=progress):
                self.workflow = progress.index
                if progress.workflow_id:
                    self.workflow_id = progress.workflow_id
            case Err(error=error):
                warnings.append(f"workflow progress incomplete: {error.message}")

        match refresh.infra:
            case Ok(value=index):
                self.infra = index
            case Err(error=error):
                warnings.append(f"infra progress incomplete: {error.message}")

        self.merged = merge_progress(self.workflow, self.infra)
        self.resolved = True
        return warnings
