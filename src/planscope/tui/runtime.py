"""
Runtime seam between the navigation controller and the UI framework.

The controller never awaits anything itself. It asks the runtime to run
background coroutines, to deliver a message after a delay, or to quit; the
runtime feeds every result back through the controller's `dispatch`.
"""

import logging
from typing import Any, Awaitable, Protocol

from ..core.cancel import CancelToken

logger = logging.getLogger(__name__)


class Runtime(Protocol):

    def spawn(self, work: Awaitable[Any], token: CancelToken) -> None:
        """
        Run `work` in the background.

        A non-None return value is dispatched as a message unless the
        token was cancelled in the meantime.
        """
        ...

    def cancel(self, token: CancelToken) -> None:
        """Cancel the token and every task spawned with it."""
        ...

    def post(self, message: Any) -> None:
        """Dispatch a message on the next turn of the loop."""
        ...

    def schedule(self, delay: float, message: Any) -> None:
        """Dispatch a message once, after `delay` seconds."""
        ...

    def quit(self) -> None:
        ...


async def guarded(work: Awaitable[Any], token: CancelToken, post) -> None:
    """
    Await background work and post its result.

    Failures are logged rather than raised: a background task must never
    take the UI loop down with it.
    """
    try:
        result = await work
    except Exception:
        logger.exception(f"Background task {token.generation} failed")
        return
    if result is not None and not token.cancelled:
        post(result)
