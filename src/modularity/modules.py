"""
Module capability roles.

A module is anything with a stable ``id``. It contributes to a package by
implementing any combination of the roles below.

Example::

    class Greeting(ModuleClassNameId, ServiceModule, ExtendingModule):
        def services(self):
            return {"greeting": lambda container: "Hello"}

        def extensions(self):
            return {"greeting": lambda greeting, container: greeting + "!"}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modularity.container import Container, ServiceExtender, ServiceFactory
    from modularity.events import ServiceEvent


class Module(ABC):
    @property
    @abstractmethod
    def id(self) -> str: ...


class ModuleClassNameId(Module):
    """Uses the qualified class name as module id."""

    @property
    def id(self) -> str:
        return f"{type(self).__module__}.{type(self).__qualname__}"


class ServiceModule(Module):
    @abstractmethod
    def services(self) -> Mapping[str, "ServiceFactory"]:
        """Singletons, resolved once and cached."""


class FactoryModule(Module):
    @abstractmethod
    def factories(self) -> Mapping[str, "ServiceFactory"]:
        """Services rebuilt on every lookup."""


class ExtendingModule(Module):
    @abstractmethod
    def extensions(self) -> Mapping[str, "ServiceExtender"]: ...


class ExecutableModule(Module):
    @abstractmethod
    def run(self, container: "Container") -> bool:
        """
        Imperative setup executed once the package is initialized.

        Returning ``False`` marks the module as failed without failing the boot.
        """


class ListeningModule(Module):
    @abstractmethod
    def listen(self, event: "ServiceEvent") -> None:
        """
        Receives every service event dispatched after this module was added,
        including the registration events of the module itself.
        """
