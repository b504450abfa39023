"""
Messages handled by the navigation loop.

Every input the controller reacts to is one of the dataclasses below:
terminal input, timer ticks, and results posted back by background tasks.
Results that belong to a detail view carry the generation of the task's
cancel token, so results from a closed view are recognised and dropped.

Tree rows carry a `Selection`, a tagged union over everything Enter can
mean in a detail view, dispatched with `match`.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..core.errors import SourceError
from ..core.graph import PlanGraph
from ..core.result import Result
from ..core.types import HelmData, HistoryEntry, InfraProgressRecord, TerraformState
from ..progress.aggregator import ProgressRefresh


# --- Terminal input ---

@dataclass(frozen=True)
class Key:
    key: str


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


# --- Dashboard ---

@dataclass(frozen=True)
class GraphLoaded:
    graph: Optional[PlanGraph]
    error: str = ""


@dataclass(frozen=True)
class ProgressCollected:
    refresh: ProgressRefresh


@dataclass(frozen=True)
class RefreshTick:
    pass


@dataclass(frozen=True)
class SpinnerTick:
    pass


# --- Detail views ---

@dataclass(frozen=True)
class InfraRecordLoaded:
    generation: int
    record: Result[Optional[InfraProgressRecord], SourceError]


@dataclass(frozen=True)
class DetailRefreshTick:
    generation: int


@dataclass(frozen=True)
class StateLoaded:
    generation: int
    state: Result[TerraformState, SourceError]


@dataclass(frozen=True)
class FileListLoaded:
    generation: int
    listing: Result[list, SourceError]


@dataclass(frozen=True)
class FileContentLoaded:
    generation: int
    path: str
    content: Result[str, SourceError]


@dataclass(frozen=True)
class HelmLoaded:
    generation: int
    helm: Result[HelmData, SourceError]


# --- Tree selections ---

@dataclass(frozen=True)
class ToggleDirectory:
    path: str


@dataclass(frozen=True)
class OpenFile:
    path: str


@dataclass(frozen=True)
class ToggleNode:
    """Expand or collapse a structured-value node."""
    path: str


@dataclass(frozen=True)
class ToggleSensitive:
    path: str


@dataclass(frozen=True)
class ToggleDate:
    date: str


@dataclass(frozen=True)
class ToggleOperation:
    date: str
    operation_id: str


@dataclass(frozen=True)
class OpenError:
    entry: HistoryEntry


Selection = Union[
    ToggleDirectory,
    OpenFile,
    ToggleNode,
    ToggleSensitive,
    ToggleDate,
    ToggleOperation,
    OpenError,
]
