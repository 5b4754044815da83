"""Floating panel manager — geometry, lifecycle and registry of named panels.

Per key the state machine is ABSENT → (PENDING →) HIDDEN ⇄ SHOWN, and
HIDDEN|SHOWN → ABSENT via destroy() or the content's exit signal.

// [LAW:single-enforcer] _open_window() is the only place windows are created.
// [LAW:one-source-of-truth] Visibility is instance.window, nothing else.
// [LAW:dataflow-not-control-flow] Fallible work (factory, window) runs before
//   the registry is touched, so a failure leaves the registry unchanged.

The manager runs on the host's single command loop. Asynchronous factories are
scheduled as tasks; completion re-checks that the key was not destroyed while
the content was being created.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from floatpane.core.errors import ContentCreationError, StaleWindowError
from floatpane.core.geometry import Geometry, PanelSpec, compute_geometry
from floatpane.core.protocols import Content, ContentFactory, HostSurface, PanelKey
from floatpane.core.registry import (
    PanelInstance,
    PanelRegistry,
    PanelState,
    validate_key,
)

logger = logging.getLogger(__name__)

TaskScheduler = Callable[[Awaitable[PanelState]], "asyncio.Future[PanelState]"]

# Window creation attempts before a stale window becomes a creation failure.
_WINDOW_ATTEMPTS = 2


@dataclass
class _PendingCreation:
    key: PanelKey
    spec: PanelSpec
    task: Any = field(default=None, repr=False)


class FloatingPanelManager:
    """Creates, shows, hides and destroys named floating panels on a host.

    Args:
        host: Window surface capability (create/hide/move windows, dimensions).
        registry: Registry to own panel instances. Pass one per manager for
            isolation; a fresh empty registry is used when omitted.
        default_spec: Spec used when toggle()/show() is called without one.
        scheduler: Turns an awaitable into a running task. Defaults to
            asyncio.ensure_future on the running loop.
    """

    def __init__(
        self,
        host: HostSurface,
        registry: PanelRegistry | None = None,
        default_spec: PanelSpec | None = None,
        scheduler: TaskScheduler | None = None,
    ) -> None:
        self._host = host
        self._registry = registry if registry is not None else PanelRegistry()
        self._default_spec = default_spec or PanelSpec()
        self._schedule = scheduler or asyncio.ensure_future
        self._pending: dict[PanelKey, _PendingCreation] = {}
        self._shown_seq = itertools.count(1)
        self._shown_at: dict[PanelKey, int] = {}

    # ─── Queries ──────────────────────────────────────────────────────

    @property
    def registry(self) -> PanelRegistry:
        return self._registry

    def state(self, key: PanelKey) -> PanelState:
        if key in self._pending:
            return PanelState.PENDING
        return self._registry.state(key)

    def instance(self, key: PanelKey) -> PanelInstance | None:
        return self._registry.get(key)

    def keys(self) -> list[PanelKey]:
        return self._registry.keys()

    def pending_task(self, key: PanelKey):
        """Task completing a pending creation for key, or None."""
        pending = self._pending.get(key)
        return pending.task if pending is not None else None

    def topmost(self) -> PanelKey | None:
        """Key of the most recently shown panel that is still visible."""
        visible = [inst.key for inst in self._registry.visible()]
        if not visible:
            return None
        return max(visible, key=lambda k: self._shown_at.get(k, 0))

    def geometry_for(self, spec: PanelSpec) -> Geometry:
        """Geometry for spec against the host as it is right now."""
        cursor = self._host.cursor_position()
        return compute_geometry(spec, self._host.query_dimensions(), cursor)

    # ─── Lifecycle ────────────────────────────────────────────────────

    def toggle(
        self,
        key: PanelKey,
        content_factory: ContentFactory,
        spec: PanelSpec | None = None,
    ) -> PanelState:
        """Hide key if it is showing, otherwise show it (creating content if absent)."""
        key = validate_key(key)
        instance = self._registry.get(key)
        if instance is not None and self._window_alive(instance):
            return self.hide(key)
        return self.show(key, content_factory, spec)

    def show(
        self,
        key: PanelKey,
        content_factory: ContentFactory,
        spec: PanelSpec | None = None,
    ) -> PanelState:
        """Ensure key is visible. Content is created only when none exists."""
        key = validate_key(key)
        if key in self._pending:
            return PanelState.PENDING

        instance = self._registry.get(key)
        if instance is None:
            return self._create(key, content_factory, spec or self._default_spec)

        if self._window_alive(instance):
            return PanelState.SHOWN
        if spec is not None:
            instance.spec = spec
        self._open_window(instance)
        return PanelState.SHOWN

    def hide(self, key: PanelKey) -> PanelState:
        """Release the window for key; content and registry entry are kept."""
        key = validate_key(key)
        instance = self._registry.get(key)
        if instance is None:
            return self.state(key)
        self._release_window(instance)
        logger.debug("panel %r hidden", key)
        return PanelState.HIDDEN

    def destroy(self, key: PanelKey) -> None:
        """Hide, unsubscribe, tear down and forget key. Absent keys are a no-op."""
        key = validate_key(key)
        if self._pending.pop(key, None) is not None:
            # Completion sees the key is gone and tears the content down.
            logger.info("panel %r destroyed while content was pending", key)

        instance = self._registry.remove(key)
        if instance is None:
            return
        self._shown_at.pop(key, None)
        self._unsubscribe(instance)
        self._release_window(instance)
        self._teardown(key, instance.content)
        logger.info("panel %r destroyed", key)

    def on_content_exited(self, key: PanelKey) -> None:
        """Backing content ended on its own: drop the entry and its window."""
        instance = self._registry.remove(key)
        if instance is None:
            return
        self._shown_at.pop(key, None)
        self._unsubscribe(instance)
        self._release_window(instance)
        status = getattr(instance.content.exit_signal, "exit_status", None)
        logger.info("panel %r content exited (status=%s)", key, status)
        self._host.notify("Panel {} closed: content exited".format(key), "information")

    def relayout(self) -> None:
        """Re-place every visible panel after the host surface was resized."""
        for instance in self._registry.visible():
            if not self._host.is_valid(instance.window):
                instance.window = None
                continue
            try:
                geometry = self.geometry_for(instance.spec)
            except ValueError as e:
                # Collapsed surface; windows keep their place until it has room again.
                logger.debug("relayout skipped: %s", e)
                return
            if geometry == instance.geometry:
                continue
            self._host.move_window(instance.window, geometry)
            instance.geometry = geometry

    def destroy_all(self) -> None:
        """Tear down every panel, pending or live. Used on host shutdown."""
        for key in list(self._pending) + self._registry.keys():
            self.destroy(key)

    # ─── Creation ─────────────────────────────────────────────────────

    def _create(self, key: PanelKey, factory: ContentFactory, spec: PanelSpec) -> PanelState:
        try:
            result = factory()
        except Exception as e:
            raise self._failure(key, "content factory failed: {}".format(e)) from e

        if inspect.isawaitable(result):
            pending = _PendingCreation(key=key, spec=spec)
            completion = self._complete(pending, result)
            self._pending[key] = pending
            try:
                pending.task = self._schedule(completion)
            except RuntimeError as e:
                # No running loop to finish creation on.
                del self._pending[key]
                completion.close()
                if inspect.iscoroutine(result):
                    result.close()
                raise self._failure(key, "cannot schedule content creation: {}".format(e)) from e
            logger.debug("panel %r content pending", key)
            return PanelState.PENDING

        return self._register(key, _as_content(result), spec)

    async def _complete(self, pending: _PendingCreation, awaitable) -> PanelState:
        key = pending.key
        try:
            result = await awaitable
        except Exception as e:
            if self._pending.get(key) is pending:
                del self._pending[key]
                self._failure(key, "content factory failed: {}".format(e))
            else:
                logger.info("panel %r: pending creation failed after destroy: %s", key, e)
            return PanelState.ABSENT

        content = _as_content(result)
        if self._pending.get(key) is not pending:
            # Destroyed (or replaced) while we were waiting.
            self._teardown(key, content)
            return PanelState.ABSENT
        del self._pending[key]

        try:
            return self._register(key, content, pending.spec)
        except ContentCreationError:
            # Already logged and reported; nobody awaits this task for errors.
            return PanelState.ABSENT

    def _register(self, key: PanelKey, content: Content, spec: PanelSpec) -> PanelState:
        instance = PanelInstance(key=key, content=content, spec=spec)
        try:
            self._open_window(instance)
        except ContentCreationError:
            self._teardown(key, content)
            raise

        self._registry.add(instance)
        if content.exit_signal is not None:
            # Subscribed after add: an already-fired signal removes the entry at once.
            instance.exit_subscription = content.exit_signal.subscribe(
                lambda: self._on_exit_event(key, content)
            )
        logger.info("panel %r created", key)
        return self._registry.state(key)

    def _on_exit_event(self, key: PanelKey, content: Content) -> None:
        instance = self._registry.get(key)
        if instance is None or instance.content is not content:
            logger.debug("ignoring stale exit event for panel %r", key)
            return
        self.on_content_exited(key)

    # ─── Windows ──────────────────────────────────────────────────────

    def _open_window(self, instance: PanelInstance) -> None:
        """Create a window for instance, retrying once when it comes back stale."""
        key = instance.key
        last_error: Exception | None = None
        for attempt in range(1, _WINDOW_ATTEMPTS + 1):
            try:
                geometry = self.geometry_for(instance.spec)
                window = self._host.create_window(instance.content, geometry, instance.spec)
            except StaleWindowError as e:
                last_error = e
            except Exception as e:
                raise self._failure(key, "window creation failed: {}".format(e)) from e
            else:
                if self._host.is_valid(window):
                    instance.window = window
                    instance.geometry = geometry
                    self._shown_at[key] = next(self._shown_seq)
                    logger.debug("panel %r shown at %s", key, geometry)
                    return
                last_error = StaleWindowError("window for {!r} is not valid".format(key), key=key)
            logger.warning("panel %r: stale window on attempt %d", key, attempt)

        raise self._failure(key, "window went stale: {}".format(last_error)) from last_error

    def _window_alive(self, instance: PanelInstance) -> bool:
        if instance.window is None:
            return False
        if self._host.is_valid(instance.window):
            return True
        # Closed behind our back; the panel is effectively hidden.
        instance.window = None
        return False

    def _release_window(self, instance: PanelInstance) -> None:
        window, instance.window = instance.window, None
        if window is not None and self._host.is_valid(window):
            self._host.hide_window(window)

    # ─── Helpers ──────────────────────────────────────────────────────

    def _unsubscribe(self, instance: PanelInstance) -> None:
        if instance.exit_subscription is not None:
            instance.exit_subscription.cancel()
            instance.exit_subscription = None

    def _teardown(self, key: PanelKey, content: Content) -> None:
        if content.teardown is None:
            return
        try:
            content.teardown()
        except Exception:
            logger.exception("panel %r: content teardown failed", key)

    def _failure(self, key: PanelKey, message: str) -> ContentCreationError:
        """Log and report a creation failure; return the error for raising."""
        logger.error("panel %r: %s", key, message)
        self._host.notify("Panel {} failed: {}".format(key, message), "error")
        return ContentCreationError(message, key=key)


def _as_content(result) -> Content:
    """Factories may return a bare handle when there is nothing to tear down."""
    return result if isinstance(result, Content) else Content(handle=result)
