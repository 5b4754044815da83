"""Panel registry — key → live panel instance.

// [LAW:one-source-of-truth] A key maps to zero or one PanelInstance.
// [LAW:no-shared-mutable-globals] Callers construct a registry and inject it
// into the manager; there is no module-level instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from floatpane.core.errors import InvalidKeyError
from floatpane.core.exit_signal import Subscription
from floatpane.core.geometry import Geometry, PanelSpec
from floatpane.core.protocols import Content, PanelKey


class PanelState(Enum):
    ABSENT = "absent"
    PENDING = "pending"
    HIDDEN = "hidden"
    SHOWN = "shown"


@dataclass
class PanelInstance:
    """One live overlay. The registry owns it; the window is borrowed."""

    key: PanelKey
    content: Content
    spec: PanelSpec
    window: Any = None
    geometry: Geometry | None = None
    exit_subscription: Subscription | None = field(default=None, repr=False)

    @property
    def visible(self) -> bool:
        return self.window is not None

    @property
    def state(self) -> PanelState:
        return PanelState.SHOWN if self.visible else PanelState.HIDDEN


def validate_key(key) -> PanelKey:
    """Return key unchanged if it is a usable registry key."""
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise InvalidKeyError("panel key must be str or int, got {!r}".format(key), key=key)
    if isinstance(key, str) and not key.strip():
        raise InvalidKeyError("panel key must not be empty", key=key)
    return key


class PanelRegistry:
    """Mapping of panel key to its single PanelInstance."""

    def __init__(self):
        self._instances: dict[PanelKey, PanelInstance] = {}

    def get(self, key: PanelKey) -> PanelInstance | None:
        return self._instances.get(key)

    def add(self, instance: PanelInstance) -> None:
        if instance.key in self._instances:
            raise KeyError("panel {!r} already registered".format(instance.key))
        self._instances[instance.key] = instance

    def remove(self, key: PanelKey) -> PanelInstance | None:
        return self._instances.pop(key, None)

    def state(self, key: PanelKey) -> PanelState:
        instance = self._instances.get(key)
        return instance.state if instance is not None else PanelState.ABSENT

    def keys(self) -> list[PanelKey]:
        return list(self._instances)

    def visible(self) -> list[PanelInstance]:
        return [inst for inst in self._instances.values() if inst.visible]

    def __contains__(self, key) -> bool:
        return key in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[PanelInstance]:
        return iter(list(self._instances.values()))
