"""
Exception hierarchy for planscope.

Soft failures travel as `Err` values (see `core.result`); the exceptions
here are reserved for conditions that stop a command outright.
"""


class PlanscopeError(Exception):
    """Base class for all planscope errors."""


class GraphBuildError(PlanscopeError):
    """
    Raised when the dependency graph cannot be constructed at all.

    Attributes:
        instance_id: The deployment instance being inspected.
        message: Human-readable error message.
    """

    def __init__(self, instance_id: str, message: str):
        self.instance_id = instance_id
        self.message = message
        super().__init__(f"Instance '{instance_id}': {message}")


class SourceError(PlanscopeError):
    """
    A fetch from an external collaborator failed.

    Attributes:
        source: Name of the source (e.g. "workflow", "infra", "logs").
        message: Human-readable error message.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class SnapshotError(PlanscopeError):
    """
    Raised when a snapshot file is missing or cannot be parsed.

    Attributes:
        path: Path of the snapshot file.
        message: Human-readable error message.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Snapshot '{path}': {message}")


class ConfigError(PlanscopeError):
    """
    Raised when the configuration file is invalid.

    Attributes:
        path: Path of the configuration file.
        message: Human-readable error message.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Config '{path}': {message}")
