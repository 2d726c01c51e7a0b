"""
Service containers.

``ContainerConfigurator`` stages services, factories, extensions and delegated
containers. ``ReadOnlyContainer`` resolves them lazily:

1. a cached singleton is returned as is;
2. a pending service is built, extended, cached unless it is a factory, and
   reported with ``BeforeServiceResolved``/``AfterServiceResolved``;
3. otherwise delegated containers are asked in order, and their value goes
   through the local extensions without being cached;
4. otherwise ``ServiceNotResolved`` gives listeners a last chance to recover
   before ``NotFoundError`` is raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, MutableMapping, MutableSequence, MutableSet, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeAlias, final, override

from modularity.dispatcher import Dispatcher
from modularity.errors import NotFoundError
from modularity.events import (
    AfterServiceResolved,
    BeforeServiceResolved,
    ServiceNotResolved,
)

if TYPE_CHECKING:
    from modularity.package import Package

logger = logging.getLogger(__name__)


class Container(ABC):
    """Read access to services by id."""

    @abstractmethod
    def has(self, service_id: str, /) -> bool: ...

    @abstractmethod
    def get(self, service_id: str, /) -> object:
        """
        :raises NotFoundError: If ``service_id`` can't be resolved.
        """

    def __contains__(self, service_id: object) -> bool:
        return isinstance(service_id, str) and self.has(service_id)

    def __getitem__(self, service_id: str) -> object:
        return self.get(service_id)


ServiceFactory: TypeAlias = Callable[[Container], object]
"""Builds a service from the container it is resolved from."""

ServiceExtender: TypeAlias = Callable[[object, Container], object]
"""Receives the current value and the container, returns the next value."""


@final
@dataclass(frozen=True, kw_only=True, slots=True, eq=False)
class ReadOnlyContainer(Container):
    services: MutableMapping[str, ServiceFactory]
    """Pending services. A singleton leaves this mapping once resolved."""

    factory_ids: MutableSet[str]
    extensions: MutableMapping[str, MutableSequence[ServiceExtender]]
    containers: Sequence[Container]
    dispatcher: Dispatcher = field(default_factory=Dispatcher)
    _resolved: dict[str, object] = field(
        default_factory=dict, init=False, repr=False
    )

    @override
    def get(self, service_id: str, /) -> object:
        if service_id in self._resolved:
            return self._resolved[service_id]

        if service_id in self.services:
            is_factory = service_id in self.factory_ids
            self.dispatcher.dispatch(
                BeforeServiceResolved(
                    service_id=service_id,
                    container=self,
                    is_external_container=False,
                    is_factory=is_factory,
                )
            )
            service = self._resolve_extensions(
                service_id, self.services[service_id](self)
            )
            if not is_factory:
                self._resolved[service_id] = service
                del self.services[service_id]
            logger.debug(
                "Resolved %s %r", "factory" if is_factory else "service", service_id
            )
            self.dispatcher.dispatch(
                AfterServiceResolved(
                    service_id=service_id,
                    service=service,
                    container=self,
                    is_external_container=False,
                    is_factory=is_factory,
                )
            )
            return service

        for container in self.containers:
            if not container.has(service_id):
                continue
            self.dispatcher.dispatch(
                BeforeServiceResolved(
                    service_id=service_id,
                    container=self,
                    is_external_container=True,
                    is_factory=False,
                )
            )
            service = self._resolve_extensions(service_id, container.get(service_id))
            logger.debug("Resolved %r from %r", service_id, container)
            self.dispatcher.dispatch(
                AfterServiceResolved(
                    service_id=service_id,
                    service=service,
                    container=self,
                    is_external_container=True,
                    is_factory=False,
                )
            )
            return service

        error = NotFoundError(service_id)
        event = self.dispatcher.dispatch(
            ServiceNotResolved(service_id=service_id, error=error, container=self)
        )
        if event.has_service:
            logger.debug("Recovered missing service %r from a listener", service_id)
            self._resolved[service_id] = event.service
            return event.service
        raise error

    @override
    def has(self, service_id: str, /) -> bool:
        if service_id in self.services:
            return True
        if service_id in self._resolved:
            return True
        return any(container.has(service_id) for container in self.containers)

    def _resolve_extensions(self, service_id: str, service: object) -> object:
        for extender in self.extensions.get(service_id, ()):
            service = extender(service, self)
        return service


@final
@dataclass(kw_only=True, slots=True, weakref_slot=True, eq=False)
class ContainerConfigurator:
    """
    Mutable staging area for a ``ReadOnlyContainer``.

    The container built by ``create_read_only_container`` shares this
    configurator's registries, so additions made afterwards are visible to it.
    Guarding against late additions is up to the owner.
    """

    containers: list[Container] = field(default_factory=list)
    dispatcher: Dispatcher = field(default_factory=Dispatcher)
    _services: dict[str, ServiceFactory] = field(default_factory=dict, init=False)
    _factory_ids: set[str] = field(default_factory=set, init=False)
    _extensions: dict[str, list[ServiceExtender]] = field(
        default_factory=dict, init=False
    )
    _container: ReadOnlyContainer | None = field(default=None, init=False)

    def add_service(self, service_id: str, factory: ServiceFactory) -> None:
        """Add or replace a singleton service."""
        _check_service_id(service_id)
        self._services[service_id] = factory
        self._factory_ids.discard(service_id)

    def add_factory(self, service_id: str, factory: ServiceFactory) -> None:
        """Add or replace a service that is rebuilt on every lookup."""
        _check_service_id(service_id)
        self._services[service_id] = factory
        self._factory_ids.add(service_id)

    def add_extension(self, service_id: str, extender: ServiceExtender) -> None:
        _check_service_id(service_id)
        self._extensions.setdefault(service_id, []).append(extender)

    def add_container(self, container: Container) -> None:
        self.containers.append(container)

    def has_service(self, service_id: str) -> bool:
        if self._container is not None:
            return self._container.has(service_id)
        if service_id in self._services:
            return True
        return any(container.has(service_id) for container in self.containers)

    def has_extension(self, service_id: str) -> bool:
        return bool(self._extensions.get(service_id))

    def is_factory(self, service_id: str) -> bool:
        return service_id in self._factory_ids

    def create_read_only_container(self) -> ReadOnlyContainer:
        if self._container is None:
            self._container = ReadOnlyContainer(
                services=self._services,
                factory_ids=self._factory_ids,
                extensions=self._extensions,
                containers=self.containers,
                dispatcher=self.dispatcher,
            )
        return self._container


def _check_service_id(service_id: str) -> None:
    if not isinstance(service_id, str) or not service_id:
        raise ValueError(f"Service id must be a non-empty string, got {service_id!r}")


@final
@dataclass(frozen=True, kw_only=True, slots=True, eq=False)
class PackageProxyContainer(Container):
    """
    Stands in for the container of a package that is not booted yet.

    Lookups fail until ``package`` is booted, then go to its container.
    """

    package: "Package"

    def _booted_container(self) -> Container | None:
        if not self.package.is_booted:
            return None
        return self.package.container()

    @override
    def has(self, service_id: str, /) -> bool:
        container = self._booted_container()
        return container is not None and container.has(service_id)

    @override
    def get(self, service_id: str, /) -> object:
        container = self._booted_container()
        if container is None:
            raise NotFoundError(service_id)
        return container.get(service_id)

