"""
Outbound notifications.

A package announces its lifecycle through a ``Hooks`` sink. The sink is purely
observational: nothing it returns is used.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final, final, override

logger = logging.getLogger(__name__)

HOOK_PREFIX: Final = "modularity."

ACTION_INIT: Final = "init"
ACTION_READY: Final = "ready"
ACTION_FAILED_BOOT: Final = "failed-boot"
ACTION_PACKAGE_CONNECTED: Final = "package-connected"
ACTION_FAILED_CONNECTION: Final = "failed-connection"
ACTION_SERVICE_NOT_REGISTERED: Final = "service-not-registered"

_WARNING_ACTIONS: Final = frozenset(
    (ACTION_FAILED_BOOT, ACTION_FAILED_CONNECTION, ACTION_SERVICE_NOT_REGISTERED)
)


def hook_name(base_name: str, suffix: str = "") -> str:
    """``modularity.<base_name>`` followed by ``.<suffix>`` when given."""
    name = f"{HOOK_PREFIX}{base_name}"
    if suffix:
        name = f"{name}.{suffix}"
    return name


class Hooks(ABC):
    @abstractmethod
    def do_action(self, hook_name: str, /, *args: object) -> None: ...


@final
class LoggingHooks(Hooks):
    """Writes every action to the ``modularity.hooks`` logger."""

    @override
    def do_action(self, hook_name: str, /, *args: object) -> None:
        level = (
            logging.WARNING
            if hook_name.rpartition(".")[2] in _WARNING_ACTIONS
            else logging.DEBUG
        )
        logger.log(level, "%s %r", hook_name, args)


@final
@dataclass(kw_only=True, slots=True)
class RecordingHooks(Hooks):
    """Keeps every action in order."""

    actions: list[tuple[str, tuple[object, ...]]] = field(default_factory=list)

    @override
    def do_action(self, hook_name: str, /, *args: object) -> None:
        self.actions.append((hook_name, args))

    def fired(self, hook_name: str) -> Sequence[tuple[object, ...]]:
        """Payloads of every ``hook_name`` action, in order."""
        return [args for name, args in self.actions if name == hook_name]
