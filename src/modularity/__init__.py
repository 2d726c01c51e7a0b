"""
modularity: A service container assembled from modules, with events.

Public API
==========

Lifecycle:
    - :class:`Package`
    - :class:`PackageStatus`
    - :class:`ModuleStatus`
    - :class:`Properties`

Module roles:
    - :class:`Module`
    - :class:`ServiceModule`
    - :class:`FactoryModule`
    - :class:`ExtendingModule`
    - :class:`ExecutableModule`
    - :class:`ListeningModule`
    - :class:`ListenerProvider`

Containers:
    - :class:`Container`
    - :class:`ReadOnlyContainer`
    - :class:`ContainerConfigurator`

Events:
    - :class:`ServiceEventType`
    - :class:`BeforeServiceAdded`
    - :class:`AfterServiceAdded`
    - :class:`BeforeServiceResolved`
    - :class:`AfterServiceResolved`
    - :class:`ServiceNotResolved`
"""

from __future__ import annotations

from modularity.container import Container as Container
from modularity.container import ContainerConfigurator as ContainerConfigurator
from modularity.container import PackageProxyContainer as PackageProxyContainer
from modularity.container import ReadOnlyContainer as ReadOnlyContainer
from modularity.dispatcher import Dispatcher as Dispatcher
from modularity.dispatcher import ListenerProvider as ListenerProvider
from modularity.dispatcher import ListeningModuleProvider as ListeningModuleProvider
from modularity.dispatcher import ServiceListeners as ServiceListeners
from modularity.errors import AlreadyConnectedError as AlreadyConnectedError
from modularity.errors import ExecutionFailure as ExecutionFailure
from modularity.errors import InvalidStateError as InvalidStateError
from modularity.errors import ModularityError as ModularityError
from modularity.errors import NotFoundError as NotFoundError
from modularity.errors import PackageConnectionRefused as PackageConnectionRefused
from modularity.events import AfterServiceAdded as AfterServiceAdded
from modularity.events import AfterServiceResolved as AfterServiceResolved
from modularity.events import BeforeServiceAdded as BeforeServiceAdded
from modularity.events import BeforeServiceResolved as BeforeServiceResolved
from modularity.events import ServiceEvent as ServiceEvent
from modularity.events import ServiceEventType as ServiceEventType
from modularity.events import ServiceNotResolved as ServiceNotResolved
from modularity.hooks import Hooks as Hooks
from modularity.hooks import LoggingHooks as LoggingHooks
from modularity.hooks import RecordingHooks as RecordingHooks
from modularity.modules import ExecutableModule as ExecutableModule
from modularity.modules import ExtendingModule as ExtendingModule
from modularity.modules import FactoryModule as FactoryModule
from modularity.modules import ListeningModule as ListeningModule
from modularity.modules import Module as Module
from modularity.modules import ModuleClassNameId as ModuleClassNameId
from modularity.modules import ServiceModule as ServiceModule
from modularity.package import MODULES_ALL as MODULES_ALL
from modularity.package import PROPERTIES as PROPERTIES
from modularity.package import ModuleStatus as ModuleStatus
from modularity.package import Package as Package
from modularity.package import PackageStatus as PackageStatus
from modularity.properties import Properties as Properties
