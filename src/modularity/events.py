"""
Service events.

Every event describes one moment in the life of a service: its registration
in a package, or its resolution from a container. Events are immutable except
for their control flags: ``stop()`` halts propagation of the current dispatch,
``BeforeServiceAdded.disable_service()`` vetoes a registration and
``ServiceNotResolved.recover_with_service()`` supplies a last-chance value.

Listeners receive the event object and select the kinds they care about with
``isinstance`` or by matching on ``event.type``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, final, override

if TYPE_CHECKING:
    from modularity.container import Container
    from modularity.properties import Properties


class ServiceEventType(Enum):
    BEFORE_REGISTER = "before-register"
    BEFORE_REGISTER_FACTORY = "before-register-factory"
    BEFORE_OVERRIDE = "before-override"
    BEFORE_OVERRIDE_WITH_FACTORY = "before-override-with-factory"
    BEFORE_EXTEND = "before-extend"
    AFTER_REGISTER = "after-register"
    AFTER_REGISTER_FACTORY = "after-register-factory"
    AFTER_OVERRIDE = "after-override"
    AFTER_OVERRIDE_WITH_FACTORY = "after-override-with-factory"
    AFTER_EXTEND = "after-extend"
    BEFORE_RESOLVED = "before-resolved"
    AFTER_RESOLVED = "after-resolved"
    NOT_RESOLVED = "not-resolved"

    @classmethod
    def for_addition(
        cls, *, before: bool, is_factory: bool, is_extension: bool, is_override: bool
    ) -> ServiceEventType:
        """
        Select the registration kind.

        Extension wins over everything else, then factory-ness and override-ness
        are combined.
        """
        match (is_extension, is_factory, is_override):
            case (True, _, _):
                return cls.BEFORE_EXTEND if before else cls.AFTER_EXTEND
            case (False, True, True):
                return (
                    cls.BEFORE_OVERRIDE_WITH_FACTORY
                    if before
                    else cls.AFTER_OVERRIDE_WITH_FACTORY
                )
            case (False, True, False):
                return cls.BEFORE_REGISTER_FACTORY if before else cls.AFTER_REGISTER_FACTORY
            case (False, False, True):
                return cls.BEFORE_OVERRIDE if before else cls.AFTER_OVERRIDE
            case _:
                return cls.BEFORE_REGISTER if before else cls.AFTER_REGISTER


@dataclass(frozen=True, kw_only=True, slots=True, weakref_slot=True)
class ServiceEvent(ABC):
    """Base of the closed family of events handled by ``Dispatcher``."""

    service_id: str
    _stopped: bool = field(default=False, init=False, repr=False, compare=False)

    @property
    @abstractmethod
    def type(self) -> ServiceEventType: ...

    def stop(self) -> None:
        """Stop propagation. There is no way to resume it."""
        object.__setattr__(self, "_stopped", True)

    @property
    def is_propagation_stopped(self) -> bool:
        return self._stopped


@dataclass(frozen=True, kw_only=True, slots=True)
class _ServiceAddition(ServiceEvent):
    kind: ServiceEventType
    module_id: str
    properties: "Properties"

    @property
    @override
    def type(self) -> ServiceEventType:
        return self.kind


@final
@dataclass(frozen=True, kw_only=True, slots=True)
class BeforeServiceAdded(_ServiceAddition):
    """Dispatched before a module's service, factory or extension is added."""

    _allowed: bool = field(default=True, init=False, repr=False, compare=False)

    def disable_service(self) -> None:
        """Veto the registration. A disabled registration stays disabled."""
        object.__setattr__(self, "_allowed", False)

    @property
    def is_service_enabled(self) -> bool:
        return self._allowed


@final
@dataclass(frozen=True, kw_only=True, slots=True)
class AfterServiceAdded(_ServiceAddition):
    """Dispatched after a module's service, factory or extension was added."""


@final
@dataclass(frozen=True, kw_only=True, slots=True)
class BeforeServiceResolved(ServiceEvent):
    container: "Container"
    is_external_container: bool
    """The value comes from a delegated container."""

    is_factory: bool

    @property
    @override
    def type(self) -> ServiceEventType:
        return ServiceEventType.BEFORE_RESOLVED


@final
@dataclass(frozen=True, kw_only=True, slots=True)
class AfterServiceResolved(ServiceEvent):
    service: object
    """The resolved value, after extensions were applied."""

    container: "Container"
    is_external_container: bool
    is_factory: bool

    @property
    @override
    def type(self) -> ServiceEventType:
        return ServiceEventType.AFTER_RESOLVED


_NO_SERVICE = object()


@final
@dataclass(frozen=True, kw_only=True, slots=True)
class ServiceNotResolved(ServiceEvent):
    """
    Dispatched when a lookup failed everywhere.

    A listener may call ``recover_with_service`` so the container caches and
    returns that value instead of raising ``error``.
    """

    error: BaseException
    container: "Container"
    _service: object = field(default=_NO_SERVICE, init=False, repr=False, compare=False)

    @property
    @override
    def type(self) -> ServiceEventType:
        return ServiceEventType.NOT_RESOLVED

    def recover_with_service(self, service: object) -> None:
        """``None`` is not a valid recovery value and is ignored."""
        if service is not None:
            object.__setattr__(self, "_service", service)

    @property
    def has_service(self) -> bool:
        return self._service is not _NO_SERVICE

    @property
    def service(self) -> object:
        return None if self._service is _NO_SERVICE else self._service
