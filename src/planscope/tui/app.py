"""
Textual front end for the navigation controller.

The app is a thin shell: it turns terminal input, timers and worker
results into controller messages and repaints a single Static widget with
whatever the controller renders. Background coroutines run as Textual
workers grouped by the generation of their cancel token.
"""

import logging
from typing import Any, Awaitable, Dict, List

from rich.console import Group
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.message import Message
from textual.widgets import Static
from textual.worker import Worker

from ..config import Settings
from ..core.cancel import CancelToken
from ..sources.base import DeploymentSource
from .messages import Key, Resize
from .navigation import NavigationController
from .runtime import guarded

logger = logging.getLogger(__name__)


class Deliver(Message):
    """Carries a controller message through Textual's message queue."""

    def __init__(self, payload: Any) -> None:
        super().__init__()
        self.payload = payload


class TextualRuntime:
    """Runtime backed by Textual workers and timers."""

    def __init__(self, app: App):
        self.app = app
        self._workers: Dict[int, List[Worker]] = {}

    def spawn(self, work: Awaitable[Any], token: CancelToken) -> None:
        worker = self.app.run_worker(
            guarded(work, token, self.post),
            group=f"generation-{token.generation}",
            exit_on_error=False,
        )
        workers = [w for w in self._workers.get(token.generation, []) if not w.is_finished]
        workers.append(worker)
        self._workers[token.generation] = workers

    def cancel(self, token: CancelToken) -> None:
        token.cancel()
        for worker in self._workers.pop(token.generation, []):
            worker.cancel()

    def post(self, message: Any) -> None:
        self.app.post_message(Deliver(message))

    def schedule(self, delay: float, message: Any) -> None:
        self.app.set_timer(delay, lambda: self.post(message))

    def quit(self) -> None:
        self.app.exit()


def key_name(event: events.Key) -> str:
    """Printable characters keep their case; everything else uses Textual's key name."""
    character = event.character
    if character and len(character) == 1 and character.isprintable() and not character.isspace():
        return character
    return event.key


class PlanscopeApp(App):
    """Interactive deployment plan dashboard."""

    CSS = """
    Screen {
        overflow: hidden;
    }

    #body {
        width: 100%;
        height: 100%;
    }
    """

    BINDINGS = [
        Binding("tab", "forward('tab')", show=False, priority=True),
        Binding("shift+tab", "forward('shift+tab')", show=False, priority=True),
        Binding("ctrl+c", "forward('ctrl+c')", show=False, priority=True),
    ]

    def __init__(self, source: DeploymentSource, instance_id: str, settings: Settings):
        super().__init__()
        self.runtime = TextualRuntime(self)
        self.controller = NavigationController(source, instance_id, self.runtime, settings)

    def compose(self) -> ComposeResult:
        yield Static(id="body")

    def on_mount(self) -> None:
        self.deliver(Resize(self.size.width, self.size.height))
        self.controller.start()
        self.repaint()

    def on_resize(self, event: events.Resize) -> None:
        self.deliver(Resize(event.size.width, event.size.height))

    def on_key(self, event: events.Key) -> None:
        event.prevent_default()
        event.stop()
        self.deliver(Key(key_name(event)))

    def action_forward(self, key: str) -> None:
        self.deliver(Key(key))

    def on_deliver(self, message: Deliver) -> None:
        self.deliver(message.payload)

    def deliver(self, message: Any) -> None:
        self.controller.dispatch(message)
        self.repaint()

    def repaint(self) -> None:
        lines = self.controller.render()
        for line in lines:
            line.no_wrap = True
            line.overflow = "crop"
        self.query_one("#body", Static).update(Group(*lines))


def run_dashboard(source: DeploymentSource, instance_id: str, settings: Settings) -> None:
    logger.info(f"Starting dashboard for {instance_id}")
    PlanscopeApp(source, instance_id, settings).run()
