"""Unit tests for the dashboard navigation state machine."""

from unittest.mock import AsyncMock

import pytest

from planscope.config import Settings
from planscope.core.errors import SourceError
from planscope.core.result import Err, Ok
from planscope.core.types import HistoryEntry, TerraformState
from planscope.tui.detail.helm import HelmDetail
from planscope.tui.detail.terraform import TerraformDetail
from planscope.tui.messages import DetailRefreshTick, Key, RefreshTick, Resize, SpinnerTick, StateLoaded
from planscope.tui.navigation import SPINNER_INTERVAL, Mode, NavigationController

INSTANCE = "inst-1"


def press(nav, *keys):
    for key in keys:
        nav.dispatch(Key(key))


@pytest.fixture
def nav(source, runtime):
    controller = NavigationController(source, INSTANCE, runtime, Settings(refresh_interval=5))
    controller.start()
    runtime.run_spawned(controller)
    return controller


class TestStartup:
    def test_loads_graph_then_progress(self, nav, runtime):
        assert nav.order.levels == [["r-net"], ["r-app", "r-dns"]]
        assert nav.progress.resolved
        assert nav.progress.workflow_id == "wf-1"
        assert nav.selected_id == "r-net"
        assert (SPINNER_INTERVAL, SpinnerTick()) in runtime.scheduled

    def test_refresh_armed_while_in_flight(self, nav, runtime):
        assert nav.refresh_scheduled
        assert runtime.scheduled[-1] == (5, RefreshTick())

    def test_refresh_idle_when_nothing_in_flight(self, source, runtime):
        source.fetch_progress_records = AsyncMock(return_value=Ok([]))
        controller = NavigationController(source, INSTANCE, runtime, Settings(refresh_interval=5))
        controller.start()
        runtime.run_spawned(controller)
        assert not controller.refresh_scheduled
        assert (5, RefreshTick()) not in runtime.scheduled

    def test_graph_failure_is_rendered(self, source, runtime):
        source.list_resources = AsyncMock(return_value=Err(SourceError("plan", "unreachable")))
        controller = NavigationController(source, INSTANCE, runtime)
        controller.start()
        runtime.run_spawned(controller)
        assert controller.graph is None
        text = "\n".join(line.plain for line in controller.render())
        assert "unreachable" in text

    def test_feed_failure_becomes_warning(self, source, runtime):
        source.fetch_workflow = AsyncMock(return_value=Err(SourceError("workflow", "timeout")))
        controller = NavigationController(source, INSTANCE, runtime)
        controller.start()
        runtime.run_spawned(controller)
        assert controller.progress_warnings == ["workflow progress incomplete: timeout"]
        assert controller.progress.resolved


class TestRefresh:
    def test_tick_starts_one_collection(self, nav, runtime):
        nav.dispatch(RefreshTick())
        assert nav.refreshing
        assert not nav.refresh_scheduled
        nav.dispatch(RefreshTick())
        assert len(runtime.spawned) == 1

    def test_suspended_in_detail_and_resumed_on_close(self, nav, runtime):
        press(nav, "enter")
        assert nav.mode == Mode.DETAIL
        runtime.discard()

        nav.dispatch(RefreshTick())
        assert runtime.spawned == []
        assert not nav.refresh_scheduled

        press(nav, "escape")
        assert nav.mode == Mode.DASHBOARD
        assert nav.refresh_scheduled
        assert runtime.scheduled[-1] == (5, RefreshTick())

    def test_spinner_stops_once_loaded(self, nav, runtime):
        nav.dispatch(SpinnerTick())
        assert not nav.spinner_running
        assert nav.spinner_tick == 1


class TestCursor:
    def test_rows_and_columns_clamp(self, nav):
        press(nav, "down", "up", "left")
        assert nav.selected_id == "r-net"
        press(nav, "right")
        assert nav.selected_id == "r-app"
        press(nav, "down", "down", "j")
        assert nav.selected_id == "r-dns"
        press(nav, "right")
        assert nav.selected_id == "r-dns"
        press(nav, "left")
        assert (nav.column, nav.row) == (0, 0)

    def test_tab_walks_levels_and_stops_at_ends(self, nav):
        press(nav, "shift+tab")
        assert nav.selected_id == "r-net"
        press(nav, "tab")
        assert nav.selected_id == "r-app"
        press(nav, "tab", "tab")
        assert nav.selected_id == "r-dns"
        press(nav, "shift+tab")
        assert nav.selected_id == "r-app"

    def test_keys_before_graph_are_ignored(self, source, runtime):
        controller = NavigationController(source, INSTANCE, runtime)
        press(controller, "down", "right", "tab", "enter")
        assert controller.selected_id == ""
        assert controller.detail is None


class TestDetail:
    def test_enter_opens_view_by_kind(self, nav, runtime):
        press(nav, "enter")
        assert isinstance(nav.detail, TerraformDetail)
        assert [token for _, token in runtime.spawned] == [nav.detail.token] * 3
        runtime.discard()
        press(nav, "escape", "right", "enter")
        assert isinstance(nav.detail, HelmDetail)
        runtime.discard()
        press(nav, "escape", "down", "enter")
        assert nav.detail is None

    def test_close_cancels_detail_token(self, nav, runtime):
        press(nav, "enter")
        detail = nav.detail
        press(nav, "escape")
        assert detail.token in runtime.cancelled
        assert detail.closed

    def test_cancelled_results_are_not_delivered(self, nav, runtime):
        press(nav, "enter")
        press(nav, "escape")
        runtime.run_spawned(nav)
        assert nav.detail is None

    def test_stale_generation_dropped(self, nav, runtime):
        press(nav, "enter")
        stale = nav.detail.generation
        runtime.discard()
        press(nav, "escape", "enter")
        runtime.discard()
        history = [HistoryEntry(operation="apply", operation_id="op-9", status="completed")]
        nav.dispatch(StateLoaded(stale, Ok(TerraformState(history=history))))
        assert nav.detail.state is None
        nav.dispatch(StateLoaded(nav.detail.generation, Ok(TerraformState(history=history))))
        assert nav.detail.state.history == history

    def test_detail_loads_and_polls_in_flight_record(self, nav, runtime):
        press(nav, "enter")
        detail = nav.detail
        runtime.run_spawned(nav)
        assert detail.record.operation_id == "op-1"
        assert detail.files.tree is not None
        assert detail.state == TerraformState()
        assert runtime.scheduled[-1] == (5, DetailRefreshTick(detail.generation))

    def test_render_delegates_to_detail(self, nav, runtime):
        press(nav, "enter")
        runtime.discard()
        nav.dispatch(Resize(80, 20))
        lines = nav.render()
        assert lines[0].plain.startswith("network")
        assert "Progress" in lines[1].plain
        assert len(lines) <= 20


class TestQuit:
    def test_q_quits_from_dashboard(self, nav, runtime):
        press(nav, "q")
        assert runtime.quit_called
        assert nav.token.cancelled

    def test_q_closes_modal_first(self, nav, runtime):
        press(nav, "enter")
        runtime.discard()
        nav.detail.open_modal(["boom"])
        press(nav, "q")
        assert nav.detail.modal is None
        assert not runtime.quit_called

    def test_ctrl_c_always_quits(self, nav, runtime):
        press(nav, "enter")
        runtime.discard()
        detail = nav.detail
        detail.open_modal(["boom"])
        press(nav, "ctrl+c")
        assert runtime.quit_called
        assert detail.token.cancelled
        assert nav.detail is None


class TestRender:
    def test_loading_screen(self, source, runtime):
        controller = NavigationController(source, INSTANCE, runtime)
        controller.start()
        lines = controller.render()
        assert lines[0].plain == "Deployment Plan · inst-1"
        assert lines[-1].plain.endswith("Loading deployment plan…")

    def test_dashboard(self, nav):
        nav.dispatch(Resize(140, 40))
        lines = nav.render()
        text = "\n".join(line.plain for line in lines)
        assert lines[0].plain == "Deployment Plan · inst-1 · workflow: wf-1"
        assert "network" in text
        assert "dns" in text
        assert lines[-1].plain.endswith("auto-refresh every 5s")
