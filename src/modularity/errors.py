"""
Exception hierarchy shared by containers and packages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modularity.package import PackageStatus


class ModularityError(Exception):
    """Base class for every error raised by this library."""


class NotFoundError(ModularityError, KeyError):
    """
    Raised when a service id is absent from the registry, the resolved cache
    and every delegated container, and no listener recovered it.

    It is also a ``KeyError`` so containers honour the ``Mapping`` protocol.
    """

    service_id: str

    def __init__(self, service_id: str) -> None:
        super().__init__(f"Service with ID {service_id} not found.")
        self.service_id = service_id

    def __str__(self) -> str:
        # KeyError quotes its argument
        return str(self.args[0])


class InvalidStateError(ModularityError):
    """An operation was attempted outside of its lifecycle phase."""

    action: str
    status: "PackageStatus | None"

    def __init__(self, action: str, status: "PackageStatus | None" = None) -> None:
        super().__init__(f"Can't {action} at this point of application.")
        self.action = action
        self.status = status


class ExecutionFailure(ModularityError):
    """
    Outcome of an executable module that raised or returned ``False`` on boot.

    ``error`` is ``None`` when ``run`` returned ``False``.
    """

    module_id: str
    error: BaseException | None

    def __init__(self, module_id: str, error: BaseException | None = None) -> None:
        if error is None:
            message = f"Module {module_id} reported a failed execution."
        else:
            message = f"Module {module_id} raised {type(error).__name__}: {error}"
        super().__init__(message)
        self.module_id = module_id
        self.error = error


class AlreadyConnectedError(ModularityError):
    """A package with the same name is already connected."""

    package_name: str
    status: "PackageStatus"

    def __init__(self, package_name: str, status: "PackageStatus") -> None:
        super().__init__(f"Package {package_name} is already connected.")
        self.package_name = package_name
        self.status = status


class PackageConnectionRefused(ModularityError):
    """The connecting package is already booted or failed."""

    package_name: str
    status: "PackageStatus"

    def __init__(self, package_name: str, status: "PackageStatus") -> None:
        super().__init__(
            f"Package {package_name} can't be connected while status is {status.name}."
        )
        self.package_name = package_name
        self.status = status
