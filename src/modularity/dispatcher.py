"""
Event dispatching.

A ``Dispatcher`` routes ``ServiceEvent`` objects to listener providers in
attachment order. When a listener stops the event, the remaining listeners
of that provider and every remaining provider are skipped.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias, TypeVar, final, override

from modularity.events import ServiceEvent, ServiceEventType

if TYPE_CHECKING:
    from modularity.modules import ListeningModule

logger = logging.getLogger(__name__)

Listener: TypeAlias = Callable[[ServiceEvent], object]
"""A listener receives the event. Its return value is ignored."""

TEvent = TypeVar("TEvent")


class ListenerProvider(ABC):
    @abstractmethod
    def listeners_for_event(self, event: ServiceEvent) -> Iterable[Listener]:
        """Return the listeners interested in ``event``, in invocation order."""


@final
@dataclass(kw_only=True, slots=True, weakref_slot=True)
class Dispatcher:
    _providers: list[ListenerProvider] = field(default_factory=list, repr=False)

    def attach_provider(self, provider: ListenerProvider) -> None:
        self._providers.append(provider)

    def dispatch(self, event: TEvent) -> TEvent:
        """
        Deliver ``event`` and return it, possibly mutated by listeners.

        Objects outside the ``ServiceEvent`` family are returned untouched.
        Providers attached while dispatching are reached by the same dispatch.
        """
        if not isinstance(event, ServiceEvent):
            return event

        index = 0
        while index < len(self._providers):
            provider = self._providers[index]
            index += 1
            if not _process_listeners(event, provider.listeners_for_event(event)):
                logger.debug(
                    "Propagation of %s for %r stopped",
                    event.type.value,
                    event.service_id,
                )
                break
        return event


def _process_listeners(event: ServiceEvent, listeners: Iterable[Listener]) -> bool:
    """Return whether propagation may continue."""
    for listener in listeners:
        if event.is_propagation_stopped:
            return False
        listener(event)
    return not event.is_propagation_stopped


@final
@dataclass(kw_only=True, slots=True)
class ListeningModuleProvider(ListenerProvider):
    """
    Provides the ``listen`` methods of listening modules.

    Every service event goes to every module; each module decides for itself
    which events it reacts to.
    """

    _listeners: list[Listener] = field(default_factory=list, repr=False)

    def add_module(self, module: "ListeningModule") -> None:
        self._listeners.append(module.listen)

    @override
    def listeners_for_event(self, event: ServiceEvent) -> Iterable[Listener]:
        return tuple(self._listeners)


EventFilter: TypeAlias = ServiceEventType | type[ServiceEvent]


@final
@dataclass(frozen=True, kw_only=True, slots=True, weakref_slot=True)
class _Registration:
    event_filter: EventFilter
    listener: Listener
    service_ids: frozenset[str]

    def matches(self, event: ServiceEvent) -> bool:
        match self.event_filter:
            case ServiceEventType() as event_type:
                if event.type is not event_type:
                    return False
            case event_class:
                if not isinstance(event, event_class):
                    return False
        return not self.service_ids or event.service_id in self.service_ids


@final
@dataclass(kw_only=True, slots=True)
class ServiceListeners(ListenerProvider):
    """
    Ad hoc listeners, each targeting one event kind and, optionally, a set of
    service ids. An empty id set targets every service.
    """

    _registrations: list[_Registration] = field(default_factory=list, repr=False)

    def add(
        self,
        event_filter: EventFilter,
        listener: Listener,
        service_ids: Collection[str] = (),
    ) -> None:
        self._registrations.append(
            _Registration(
                event_filter=event_filter,
                listener=listener,
                service_ids=frozenset(service_ids),
            )
        )

    def __len__(self) -> int:
        return len(self._registrations)

    @override
    def listeners_for_event(self, event: ServiceEvent) -> Iterable[Listener]:
        return tuple(
            registration.listener
            for registration in self._registrations
            if registration.matches(event)
        )
