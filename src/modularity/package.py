"""
Packages bind modules into one container through a strict lifecycle::

    IDLE --boot()--> INITIALIZED --> BOOTED
      |                   |
      +-------------------+--> FAILED

Modules can only be added while the package is idle. Adding a module
registers its services, factories and extensions, each announced with a
``BeforeServiceAdded`` event that listeners may veto and an
``AfterServiceAdded`` event. Listeners reacting to those events may add more
modules: they are queued and processed, in order, once the current module is
done. Executable modules run on boot, against the finished container.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, Self, final

from modularity.container import (
    Container,
    ContainerConfigurator,
    PackageProxyContainer,
    ReadOnlyContainer,
)
from modularity.dispatcher import (
    Dispatcher,
    EventFilter,
    Listener,
    ListenerProvider,
    ListeningModuleProvider,
    ServiceListeners,
)
from modularity.errors import (
    AlreadyConnectedError,
    ExecutionFailure,
    InvalidStateError,
    PackageConnectionRefused,
)
from modularity.events import AfterServiceAdded, BeforeServiceAdded, ServiceEventType
from modularity.hooks import (
    ACTION_FAILED_BOOT,
    ACTION_FAILED_CONNECTION,
    ACTION_INIT,
    ACTION_PACKAGE_CONNECTED,
    ACTION_READY,
    ACTION_SERVICE_NOT_REGISTERED,
    Hooks,
    LoggingHooks,
    hook_name,
)
from modularity.modules import (
    ExecutableModule,
    ExtendingModule,
    FactoryModule,
    ListeningModule,
    Module,
    ServiceModule,
)
from modularity.properties import Properties

logger = logging.getLogger(__name__)

PROPERTIES: Final = "properties"
"""Container id of the package's own ``Properties``."""

MODULES_ALL: Final = "*"
"""Key of the human readable log in ``Package.modules_status()``."""


class PackageStatus(Enum):
    IDLE = 2
    INITIALIZED = 4
    BOOTED = 8
    FAILED = -8


_TRANSITIONS: Final[Mapping[PackageStatus, frozenset[PackageStatus]]] = {
    PackageStatus.IDLE: frozenset((PackageStatus.INITIALIZED, PackageStatus.FAILED)),
    PackageStatus.INITIALIZED: frozenset((PackageStatus.BOOTED, PackageStatus.FAILED)),
    PackageStatus.BOOTED: frozenset(),
    PackageStatus.FAILED: frozenset(),
}


class ModuleStatus(Enum):
    ADDED = "added"
    NOT_ADDED = "not-added"
    REGISTERED = "registered"
    REGISTERED_FACTORIES = "registered-factories"
    EXTENDED = "extended"
    EXECUTED = "executed"
    EXECUTION_FAILED = "execution-failed"


@final
@dataclass(kw_only=True, slots=True, weakref_slot=True, eq=False)
class Package:
    properties: Properties
    hooks: Hooks = field(default_factory=LoggingHooks)
    containers: Iterable[Container] = ()
    """Containers consulted when a service is not found locally."""

    dispatcher: Dispatcher = field(default_factory=Dispatcher, init=False, repr=False)
    _status: PackageStatus = field(default=PackageStatus.IDLE, init=False)
    _configurator: ContainerConfigurator = field(init=False, repr=False)
    _module_status: dict[str, list[str]] = field(init=False, repr=False)
    _connected_packages: dict[str, bool] = field(
        default_factory=dict, init=False, repr=False
    )
    _executables: list[ExecutableModule] = field(
        default_factory=list, init=False, repr=False
    )
    _execution_failures: list[ExecutionFailure] = field(
        default_factory=list, init=False, repr=False
    )
    _listening_module_provider: ListeningModuleProvider | None = field(
        default=None, init=False, repr=False
    )
    _service_listeners: ServiceListeners | None = field(
        default=None, init=False, repr=False
    )
    _pending_modules: deque[Module] = field(default_factory=deque, init=False, repr=False)
    _is_adding_modules: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self._configurator = ContainerConfigurator(
            containers=list(self.containers), dispatcher=self.dispatcher
        )
        self._module_status = {MODULES_ALL: []}
        properties = self.properties
        self._configurator.add_service(PROPERTIES, lambda _container: properties)

    @classmethod
    def new(
        cls, properties: Properties, /, *containers: Container, hooks: Hooks | None = None
    ) -> Package:
        if hooks is None:
            return cls(properties=properties, containers=containers)
        return cls(properties=properties, containers=containers, hooks=hooks)

    @property
    def name(self) -> str:
        return self.properties.base_name

    @property
    def status(self) -> PackageStatus:
        return self._status

    def status_is(self, status: PackageStatus) -> bool:
        return self._status is status

    @property
    def is_booted(self) -> bool:
        return self._status is PackageStatus.BOOTED

    def hook_name(self, suffix: str = "") -> str:
        return hook_name(self.name, suffix)

    def add_module(self, module: Module) -> Self:
        """
        Register everything ``module`` contributes.

        When called from a listener while another module is being added,
        ``module`` is queued and processed right after the current one.

        :raises InvalidStateError: If the package is not idle.
        """
        self._assert_status(PackageStatus.IDLE, "add module")
        self._pending_modules.append(module)
        if self._is_adding_modules:
            return self

        self._is_adding_modules = True
        try:
            while self._pending_modules:
                self._process_module(self._pending_modules.popleft())
        finally:
            self._is_adding_modules = False
            self._pending_modules.clear()
        return self

    def listen(
        self, event_filter: EventFilter, listener: Listener, /, *service_ids: str
    ) -> Self:
        """
        Attach ``listener`` to one event kind, optionally for the given
        service ids only.

        ``event_filter`` is either a ``ServiceEventType`` or an event class.
        """
        if self._service_listeners is None:
            self._service_listeners = ServiceListeners()
            self.dispatcher.attach_provider(self._service_listeners)
        self._service_listeners.add(event_filter, listener, service_ids)
        return self

    def connect(self, package: Package) -> bool:
        """
        Make the services of ``package`` visible in this package's container.

        If ``package`` is not booted yet, its services become available once
        it is. Failures are reported through the ``failed-connection`` hook.
        """
        if package is self:
            return False

        package_name = package.name
        if package_name in self._connected_packages:
            self._fail_connection(
                package_name, AlreadyConnectedError(package_name, self._status)
            )
            return False

        if self._status in (PackageStatus.BOOTED, PackageStatus.FAILED):
            self._connected_packages[package_name] = False
            self._fail_connection(
                package_name, PackageConnectionRefused(package_name, self._status)
            )
            return False

        self._connected_packages[package_name] = True

        self._configurator.add_service(
            f"{package_name}.{PROPERTIES}", lambda _container: package.properties
        )

        container: Container = (
            package.container()
            if package.is_booted
            else PackageProxyContainer(package=package)
        )
        self._configurator.add_container(container)

        is_proxy = isinstance(container, PackageProxyContainer)
        logger.debug(
            "Connected package %r to %r%s",
            package_name,
            self.name,
            " through a proxy" if is_proxy else "",
        )
        self.hooks.do_action(
            self.hook_name(ACTION_PACKAGE_CONNECTED), package_name, self._status, is_proxy
        )
        return True

    def boot(self, *modules: Module) -> bool:
        """
        Add ``modules``, lock the package and run executable modules.

        Any error is reported through the ``failed-boot`` hook, then raised
        again in debug mode. Otherwise ``False`` is returned.
        """
        if not self.status_is(PackageStatus.IDLE):
            error = InvalidStateError("execute boot", self._status)
            if self.properties.is_debug:
                raise error
            logger.warning("%s", error)
            return False

        try:
            for module in modules:
                self.add_module(module)

            self.hooks.do_action(self.hook_name(ACTION_INIT), self)
            # No more modules or containers from here on.
            self._progress(PackageStatus.INITIALIZED)

            if self._executables:
                self._execute()

            self.hooks.do_action(self.hook_name(ACTION_READY), self)
        except Exception as error:
            self._progress(PackageStatus.FAILED)
            logger.error("Boot of package %r failed", self.name, exc_info=error)
            self.hooks.do_action(self.hook_name(ACTION_FAILED_BOOT), error)
            if self.properties.is_debug:
                raise
            return False

        self._progress(PackageStatus.BOOTED)
        logger.debug("Package %r booted", self.name)
        return True

    def container(self) -> ReadOnlyContainer:
        """
        :raises InvalidStateError: Before boot, or after a failed boot.
        """
        if self._status.value < PackageStatus.INITIALIZED.value:
            raise InvalidStateError("access container", self._status)
        return self._configurator.create_read_only_container()

    def modules_status(self) -> Mapping[str, Sequence[str]]:
        """
        Module ids keyed by ``ModuleStatus`` value, plus a readable log of
        every outcome under ``MODULES_ALL``.
        """
        return {key: tuple(value) for key, value in self._module_status.items()}

    def module_is(self, module_id: str, status: ModuleStatus | str) -> bool:
        key = status.value if isinstance(status, ModuleStatus) else status
        return module_id in self._module_status.get(key, ())

    def connected_packages(self) -> Mapping[str, bool]:
        return dict(self._connected_packages)

    def is_package_connected(self, package_name: str) -> bool:
        return self._connected_packages.get(package_name, False)

    def execution_failures(self) -> Sequence[ExecutionFailure]:
        return tuple(self._execution_failures)

    def _process_module(self, module: Module) -> None:
        logger.debug("Adding module %r to package %r", module.id, self.name)
        self._maybe_attach_listener_provider(module)

        registered = self._add_module_services(module, ModuleStatus.REGISTERED)
        registered_factories = self._add_module_services(
            module, ModuleStatus.REGISTERED_FACTORIES
        )
        extended = self._add_module_services(module, ModuleStatus.EXTENDED)

        is_executable = isinstance(module, ExecutableModule)
        if is_executable:
            self._executables.append(module)

        added = registered or registered_factories or extended or is_executable
        self._module_progress(
            module.id, ModuleStatus.ADDED if added else ModuleStatus.NOT_ADDED
        )

    def _maybe_attach_listener_provider(self, module: Module) -> None:
        if isinstance(module, ListenerProvider):
            self.dispatcher.attach_provider(module)

        if isinstance(module, ListeningModule):
            if self._listening_module_provider is None:
                self._listening_module_provider = ListeningModuleProvider()
                self.dispatcher.attach_provider(self._listening_module_provider)
            self._listening_module_provider.add_module(module)

    def _add_module_services(self, module: Module, status: ModuleStatus) -> bool:
        add: Callable[[str, Callable[..., object]], None]
        match status:
            case ModuleStatus.REGISTERED if isinstance(module, ServiceModule):
                services = module.services()
                add = self._configurator.add_service
            case ModuleStatus.REGISTERED_FACTORIES if isinstance(module, FactoryModule):
                services = module.factories()
                add = self._configurator.add_factory
            case ModuleStatus.EXTENDED if isinstance(module, ExtendingModule):
                services = module.extensions()
                add = self._configurator.add_extension
            case _:
                return False

        if not services:
            return False

        module_id = module.id
        is_factory = status is ModuleStatus.REGISTERED_FACTORIES
        is_extension = status is ModuleStatus.EXTENDED
        service_ids: list[str] = []
        for service_id, service in services.items():
            is_override = not is_extension and self._configurator.has_service(service_id)

            before = self.dispatcher.dispatch(
                BeforeServiceAdded(
                    kind=ServiceEventType.for_addition(
                        before=True,
                        is_factory=is_factory,
                        is_extension=is_extension,
                        is_override=is_override,
                    ),
                    service_id=service_id,
                    module_id=module_id,
                    properties=self.properties,
                )
            )
            if not before.is_service_enabled:
                logger.warning(
                    "Service %r of module %r was not registered", service_id, module_id
                )
                self._module_status[MODULES_ALL].append(
                    f"{module_id} {ACTION_SERVICE_NOT_REGISTERED} ({service_id})"
                )
                self.hooks.do_action(
                    self.hook_name(ACTION_SERVICE_NOT_REGISTERED), service_id, module_id
                )
                continue

            add(service_id, service)
            service_ids.append(service_id)

            self.dispatcher.dispatch(
                AfterServiceAdded(
                    kind=ServiceEventType.for_addition(
                        before=False,
                        is_factory=is_factory,
                        is_extension=is_extension,
                        is_override=is_override,
                    ),
                    service_id=service_id,
                    module_id=module_id,
                    properties=self.properties,
                )
            )

        self._module_progress(module_id, status, service_ids)
        return True

    def _execute(self) -> None:
        container = self.container()
        for executable in self._executables:
            try:
                success = executable.run(container)
            except Exception as error:
                self._execution_failures.append(ExecutionFailure(executable.id, error))
                self._module_progress(executable.id, ModuleStatus.EXECUTION_FAILED)
                continue

            if success:
                self._module_progress(executable.id, ModuleStatus.EXECUTED)
            else:
                self._execution_failures.append(ExecutionFailure(executable.id))
                self._module_progress(executable.id, ModuleStatus.EXECUTION_FAILED)

        for failure in self._execution_failures:
            if failure.error is not None:
                raise failure.error

    def _module_progress(
        self,
        module_id: str,
        status: ModuleStatus,
        service_ids: Sequence[str] | None = None,
    ) -> None:
        self._module_status.setdefault(status.value, []).append(module_id)

        if service_ids and self.properties.is_debug:
            description = f"{module_id} {status.value} ({', '.join(service_ids)})"
        else:
            description = f"{module_id} {status.value}"
        self._module_status[MODULES_ALL].append(description)

    def _progress(self, status: PackageStatus) -> None:
        if status not in _TRANSITIONS[self._status]:
            raise InvalidStateError(f"move to {status.name}", self._status)
        logger.debug("Package %r: %s -> %s", self.name, self._status.name, status.name)
        self._status = status

    def _assert_status(self, status: PackageStatus, action: str) -> None:
        if self._status is not status:
            raise InvalidStateError(action, self._status)

    def _fail_connection(self, package_name: str, error: Exception) -> None:
        logger.warning("%s", error)
        self.hooks.do_action(self.hook_name(ACTION_FAILED_CONNECTION), package_name, error)
