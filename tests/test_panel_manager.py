"""Tests for FloatingPanelManager — toggle/destroy/exit lifecycle on a fake host."""

import logging

import pytest

from floatpane.core.errors import ContentCreationError, InvalidKeyError
from floatpane.core.exit_signal import ExitSignal
from floatpane.core.geometry import Geometry, PanelSpec
from floatpane.core.manager import FloatingPanelManager
from floatpane.core.protocols import Content
from floatpane.core.registry import PanelRegistry, PanelState
from tests.harness.fake_host import CountingFactory, FakeHost, GatedAsyncFactory


@pytest.fixture
def host():
    return FakeHost(dimensions=(200, 50))


@pytest.fixture
def manager(host):
    return FloatingPanelManager(host, PanelRegistry())


@pytest.fixture
def factory():
    return CountingFactory("term")


# ─── Toggle ──────────────────────────────────────────────────────────────────


class TestToggle:
    def test_three_toggles_reuse_content(self, manager, host, factory):
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 1
        first_handle = manager.instance("term1").content.handle

        assert manager.toggle("term1", factory) is PanelState.HIDDEN
        assert factory.calls == 1
        assert host.live_windows == []
        assert "term1" in manager.registry

        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 1
        assert manager.instance("term1").content.handle == first_handle
        assert len(host.windows) == 2
        assert len(host.live_windows) == 1

    def test_first_show_uses_centered_geometry(self, manager, host, factory):
        manager.toggle("term1", factory)
        assert host.windows[0].geometry == Geometry(width=160, height=40, col=20, row=5)
        assert manager.instance("term1").geometry == Geometry(160, 40, 20, 5)

    @pytest.mark.parametrize("prior_toggles", [0, 1, 2, 3])
    def test_pair_law(self, manager, factory, prior_toggles):
        for _ in range(prior_toggles):
            manager.toggle("k", factory)
        before = manager.state("k") is PanelState.SHOWN
        manager.toggle("k", factory)
        manager.toggle("k", factory)
        assert (manager.state("k") is PanelState.SHOWN) == before

    def test_three_keys_never_share_handles(self, manager, host, factory):
        for key in ("term1", "term2", "term3"):
            assert manager.toggle(key, factory) is PanelState.SHOWN
        handles = {manager.instance(k).content.handle for k in ("term1", "term2", "term3")}
        windows = {id(manager.instance(k).window) for k in ("term1", "term2", "term3")}
        assert len(handles) == 3
        assert len(windows) == 3
        assert factory.calls == 3

    def test_dimensions_queried_fresh_on_each_show(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term1", factory)
        host.dimensions = (100, 20)
        manager.toggle("term1", factory)
        assert manager.instance("term1").geometry == Geometry(width=80, height=16, col=10, row=2)
        assert host.query_count == 2

    def test_spec_per_toggle(self, manager, host, factory):
        manager.toggle("term1", factory, PanelSpec(0.5, 0.5))
        assert host.windows[-1].geometry == Geometry(width=100, height=25, col=50, row=12)

    def test_default_spec_from_constructor(self, host, factory):
        manager = FloatingPanelManager(host, PanelRegistry(), default_spec=PanelSpec(1.0, 1.0))
        manager.toggle("term1", factory)
        assert host.windows[-1].geometry == Geometry(200, 50, 0, 0)

    def test_window_closed_by_host_counts_as_hidden(self, manager, host, factory):
        manager.toggle("term1", factory)
        host.windows[0].valid = False
        assert manager.state("term1") is PanelState.SHOWN  # not noticed yet
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 1
        assert len(host.windows) == 2
        assert manager.instance("term1").window is host.windows[1]

    def test_int_keys(self, manager, factory):
        assert manager.toggle(7, factory) is PanelState.SHOWN
        assert manager.state(7) is PanelState.SHOWN
        assert manager.state("7") is PanelState.ABSENT

    def test_invalid_key(self, manager, factory):
        with pytest.raises(InvalidKeyError):
            manager.toggle("", factory)
        assert factory.calls == 0

    def test_factory_may_return_bare_handle(self, manager, host):
        assert manager.toggle("doc", lambda: "just-a-handle") is PanelState.SHOWN
        assert manager.instance("doc").content.handle == "just-a-handle"
        manager.destroy("doc")  # no teardown, no exit signal
        assert manager.state("doc") is PanelState.ABSENT


class TestShowHide:
    def test_show_is_idempotent(self, manager, host, factory):
        assert manager.show("term1", factory) is PanelState.SHOWN
        assert manager.show("term1", factory) is PanelState.SHOWN
        assert len(host.windows) == 1

    def test_hide_absent_key(self, manager):
        assert manager.hide("term1") is PanelState.ABSENT

    def test_hide_twice(self, manager, host, factory):
        manager.show("term1", factory)
        assert manager.hide("term1") is PanelState.HIDDEN
        assert manager.hide("term1") is PanelState.HIDDEN
        assert len(host.hidden) == 1

    def test_topmost_tracks_most_recent_visible(self, manager, factory):
        assert manager.topmost() is None
        manager.show("a", factory)
        manager.show("b", factory)
        assert manager.topmost() == "b"
        manager.hide("b")
        assert manager.topmost() == "a"
        manager.show("b", factory)
        manager.hide("a")
        manager.show("a", factory)
        assert manager.topmost() == "a"


# ─── Destroy / exit ──────────────────────────────────────────────────────────


class TestDestroy:
    def test_destroy_tears_down_and_forgets(self, manager, host, factory):
        manager.toggle("term1", factory)
        handle = factory.last.handle
        manager.destroy("term1")
        assert manager.state("term1") is PanelState.ABSENT
        assert factory.torn_down == [handle]
        assert host.live_windows == []

    def test_destroy_hidden_panel(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term1", factory)
        manager.destroy("term1")
        assert manager.state("term1") is PanelState.ABSENT
        assert len(host.hidden) == 1
        assert len(factory.torn_down) == 1

    def test_destroy_is_idempotent(self, manager, factory):
        manager.destroy("never-seen")
        manager.toggle("term1", factory)
        manager.destroy("term1")
        manager.destroy("term1")
        assert len(factory.torn_down) == 1

    def test_destroy_then_toggle_is_fresh(self, manager, factory):
        manager.toggle("term1", factory)
        first = factory.last.handle
        manager.destroy("term1")
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 2
        assert manager.instance("term1").content.handle != first

    def test_destroy_unsubscribes_exit_hook(self, manager, factory):
        manager.toggle("term1", factory)
        old_signal = factory.last.exit_signal
        manager.destroy("term1")
        manager.toggle("term1", factory)
        old_signal.fire(0)
        assert manager.state("term1") is PanelState.SHOWN

    def test_teardown_failure_is_logged(self, manager, caplog):
        def _broken_teardown():
            raise RuntimeError("kill failed")

        manager.toggle("term1", lambda: Content(handle="h", teardown=_broken_teardown))
        with caplog.at_level(logging.ERROR, logger="floatpane.core.manager"):
            manager.destroy("term1")
        assert manager.state("term1") is PanelState.ABSENT
        assert "content teardown failed" in caplog.text

    def test_destroy_all(self, manager, host, factory):
        for key in ("term1", "term2", "term3"):
            manager.toggle(key, factory)
        manager.toggle("term2", factory)
        manager.destroy_all()
        assert manager.keys() == []
        assert len(factory.torn_down) == 3
        assert host.live_windows == []

    def test_other_keys_untouched(self, manager, factory):
        manager.toggle("term1", factory)
        manager.toggle("term2", factory)
        manager.destroy("term1")
        assert manager.state("term2") is PanelState.SHOWN


class TestContentExit:
    def test_exit_while_shown(self, manager, host, factory):
        manager.toggle("term1", factory)
        factory.last.exit_signal.fire(0)
        assert manager.state("term1") is PanelState.ABSENT
        assert host.live_windows == []
        # Content is already gone; no teardown on exit.
        assert factory.torn_down == []
        assert ("information", "Panel term1 closed: content exited") in host.notifications

    def test_exit_while_hidden(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term1", factory)
        manager.on_content_exited("term1")
        assert manager.state("term1") is PanelState.ABSENT
        assert len(host.hidden) == 1

    def test_toggle_after_exit_creates_new_content(self, manager, factory):
        manager.toggle("term1", factory)
        factory.last.exit_signal.fire(1)
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 2

    def test_exit_for_unknown_key_is_ignored(self, manager):
        manager.on_content_exited("nobody")
        assert manager.keys() == []

    def test_content_that_already_exited(self, manager, host):
        signal = ExitSignal()
        signal.fire(0)
        state = manager.toggle("term1", lambda: Content(handle="dead", exit_signal=signal))
        assert state is PanelState.ABSENT
        assert host.live_windows == []


class TestRelayout:
    def test_moves_visible_panels(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term2", factory)
        manager.toggle("term2", factory)  # hidden
        host.dimensions = (100, 20)
        manager.relayout()
        assert len(host.moves) == 1
        window, geometry = host.moves[0]
        assert window is manager.instance("term1").window
        assert geometry == Geometry(80, 16, 10, 2)

    def test_no_move_when_unchanged(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.relayout()
        assert host.moves == []

    def test_collapsed_host_leaves_windows_in_place(self, manager, host, factory):
        manager.toggle("term1", factory)
        host.dimensions = (0, 0)
        manager.relayout()
        assert host.moves == []
        assert manager.instance("term1").geometry == Geometry(160, 40, 20, 5)

    def test_drops_windows_closed_by_host(self, manager, host, factory):
        manager.toggle("term1", factory)
        host.windows[0].valid = False
        manager.relayout()
        assert manager.state("term1") is PanelState.HIDDEN


# ─── Failures ────────────────────────────────────────────────────────────────


class TestCreationFailures:
    def test_factory_error(self, manager, host):
        factory = CountingFactory(error=OSError("no such shell"))
        with pytest.raises(ContentCreationError) as excinfo:
            manager.toggle("term1", factory)
        assert isinstance(excinfo.value.__cause__, OSError)
        assert excinfo.value.key == "term1"
        assert manager.keys() == []
        assert host.windows == []
        assert host.severities() == ["error"]

    def test_failure_does_not_touch_other_keys(self, manager, factory):
        manager.toggle("term1", factory)
        with pytest.raises(ContentCreationError):
            manager.toggle("term2", CountingFactory(error=RuntimeError("x")))
        assert manager.keys() == ["term1"]
        assert manager.state("term1") is PanelState.SHOWN

    def test_window_error_tears_down_fresh_content(self, manager, host, factory):
        host.create_error = RuntimeError("screen gone")
        with pytest.raises(ContentCreationError):
            manager.toggle("term1", factory)
        assert manager.keys() == []
        assert factory.torn_down == [factory.last.handle]

    def test_collapsed_host_is_creation_error(self, factory):
        host = FakeHost(dimensions=(0, 0))
        manager = FloatingPanelManager(host, PanelRegistry())
        with pytest.raises(ContentCreationError) as excinfo:
            manager.toggle("help", factory)
        assert isinstance(excinfo.value.__cause__, ValueError)
        assert manager.state("help") is PanelState.ABSENT
        assert factory.torn_down == [factory.last.handle]
        assert host.windows == []
        assert host.severities() == ["error"]

    def test_collapsed_host_keeps_hidden_instance(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term1", factory)
        host.dimensions = (0, 0)
        with pytest.raises(ContentCreationError):
            manager.toggle("term1", factory)
        assert manager.state("term1") is PanelState.HIDDEN
        assert factory.torn_down == []

    def test_stale_window_is_retried_once(self, manager, host, factory):
        host.stale_raises = 1
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert len(host.windows) == 1
        assert host.query_count == 2

    def test_invalid_window_is_retried_once(self, manager, host, factory):
        host.invalid_creates = 1
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert len(host.windows) == 2
        assert manager.instance("term1").window is host.windows[1]

    def test_stale_twice_is_creation_error(self, manager, host, factory):
        host.invalid_creates = 2
        with pytest.raises(ContentCreationError):
            manager.toggle("term1", factory)
        assert manager.state("term1") is PanelState.ABSENT
        assert factory.torn_down == [factory.last.handle]

    def test_stale_reshow_keeps_hidden_instance(self, manager, host, factory):
        manager.toggle("term1", factory)
        manager.toggle("term1", factory)
        host.stale_raises = 2
        with pytest.raises(ContentCreationError):
            manager.toggle("term1", factory)
        assert manager.state("term1") is PanelState.HIDDEN
        assert factory.torn_down == []
        host.stale_raises = 0
        assert manager.toggle("term1", factory) is PanelState.SHOWN
        assert factory.calls == 1


class TestIsolation:
    def test_managers_do_not_share_registries(self, factory):
        a = FloatingPanelManager(FakeHost(), PanelRegistry())
        b = FloatingPanelManager(FakeHost(), PanelRegistry())
        a.toggle("term1", factory)
        assert b.state("term1") is PanelState.ABSENT

    def test_injected_registry_is_used(self, host, factory):
        registry = PanelRegistry()
        manager = FloatingPanelManager(host, registry)
        manager.toggle("term1", factory)
        assert registry.get("term1") is manager.instance("term1")


# ─── Asynchronous content ────────────────────────────────────────────────────


class TestAsyncContent:
    async def test_pending_then_shown(self, manager, host):
        factory = GatedAsyncFactory()
        assert manager.toggle("term1", factory) is PanelState.PENDING
        assert manager.state("term1") is PanelState.PENDING
        assert manager.keys() == []
        assert host.windows == []

        task = manager.pending_task("term1")
        factory.gate.set()
        assert await task is PanelState.SHOWN
        assert manager.state("term1") is PanelState.SHOWN
        assert manager.pending_task("term1") is None
        assert len(host.live_windows) == 1

    async def test_toggle_while_pending_is_noop(self, manager):
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        assert manager.toggle("term1", factory) is PanelState.PENDING
        assert factory.calls == 1
        task = manager.pending_task("term1")
        factory.gate.set()
        await task
        assert manager.toggle("term1", factory) is PanelState.HIDDEN
        assert factory.calls == 1

    async def test_destroy_during_pending_tears_down_on_completion(self, manager, host):
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        task = manager.pending_task("term1")
        manager.destroy("term1")
        assert manager.state("term1") is PanelState.ABSENT

        factory.gate.set()
        assert await task is PanelState.ABSENT
        assert host.windows == []
        assert factory.torn_down == [factory.last.handle]
        assert manager.state("term1") is PanelState.ABSENT

    async def test_destroy_then_recreate_while_first_pending(self, manager):
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        first = manager.pending_task("term1")
        manager.destroy("term1")
        manager.toggle("term1", factory)
        second = manager.pending_task("term1")

        factory.gate.set()
        assert await first is PanelState.ABSENT
        assert await second is PanelState.SHOWN
        live_handle = manager.instance("term1").content.handle
        assert len(factory.torn_down) == 1
        assert live_handle not in factory.torn_down

    async def test_async_failure_leaves_registry_unchanged(self, manager, host):
        factory = GatedAsyncFactory(error=FileNotFoundError("missing"))
        manager.toggle("term1", factory)
        task = manager.pending_task("term1")
        factory.gate.set()
        assert await task is PanelState.ABSENT
        assert manager.state("term1") is PanelState.ABSENT
        assert host.severities() == ["error"]

    async def test_async_window_failure(self, manager, host):
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        task = manager.pending_task("term1")
        host.create_error = RuntimeError("no screen")
        factory.gate.set()
        assert await task is PanelState.ABSENT
        assert factory.torn_down == [factory.last.handle]
        assert manager.keys() == []

    async def test_async_collapsed_host_tears_down(self, host):
        host.dimensions = (0, 0)
        manager = FloatingPanelManager(host, PanelRegistry())
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        task = manager.pending_task("term1")
        factory.gate.set()
        assert await task is PanelState.ABSENT
        assert factory.torn_down == [factory.last.handle]
        assert host.severities() == ["error"]

    async def test_destroy_all_cancels_pending(self, manager):
        factory = GatedAsyncFactory()
        manager.toggle("term1", factory)
        task = manager.pending_task("term1")
        manager.destroy_all()
        factory.gate.set()
        assert await task is PanelState.ABSENT
        assert manager.keys() == []

    def test_unschedulable_creation_fails_cleanly(self, host):
        def _no_loop(awaitable):
            raise RuntimeError("no running event loop")

        manager = FloatingPanelManager(host, PanelRegistry(), scheduler=_no_loop)
        with pytest.raises(ContentCreationError):
            manager.toggle("term1", GatedAsyncFactory())
        assert manager.state("term1") is PanelState.ABSENT
