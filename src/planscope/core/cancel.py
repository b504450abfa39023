"""
Cancellation tokens for background tasks.

Every background task is handed a token when it is created. The task
checks it before delivering results, and the UI loop drops any message
whose generation no longer matches the view that asked for it.
"""

import itertools
from dataclasses import dataclass, field

_generations = itertools.count(1)


@dataclass
class CancelToken:
    generation: int = field(default_factory=lambda: next(_generations))
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True
