from __future__ import annotations

import logging
import warnings
from abc import ABC, abstractmethod
from contextlib import ExitStack
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ._container import is_disposable


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType
    from typing import Self


class ServiceScope(Protocol):
    """Resolution scope required from a container."""

    def get_service(self, token: Any) -> object | None: ...

    def close(self) -> None: ...


class ServiceProvider(Protocol):
    """Root container capability required by `ContainerJobActivator`."""

    def get_service(self, token: Any) -> object | None: ...

    def create_scope(self) -> ServiceScope: ...


@dataclass(frozen=True)
class JobActivatorContext:
    """Information about the job a scope is opened for.

    Activators may inspect it but resolution never depends on it.
    """

    job_id: str | None = None
    job_type: type | None = None
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))


class JobActivatorScope(ABC):
    """Scope handle for one job execution.

    Use it as a context manager so it is closed on every exit path:

        with activator.begin_scope(context) as scope:
            job = scope.resolve(job_type)
            job.perform()
    """

    def __init__(self) -> None:
        self._closed = False

    @abstractmethod
    def resolve(self, job_type: type) -> object | None:
        """Resolve `job_type` within this scope."""

    @abstractmethod
    def dispose_scope(self) -> None:
        """Release everything created through this scope."""

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Dispose the scope once. Later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        self.dispose_scope()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


@runtime_checkable
class JobActivator(Protocol):
    """Object activation contract of the job framework."""

    def activate_job(self, job_type: type) -> object | None: ...

    def begin_scope(self, context: JobActivatorContext | None = None) -> JobActivatorScope: ...


def _warn_legacy_begin_scope(activator: object) -> None:
    warnings.warn(
        f"{type(activator).__name__}.begin_scope() without a context is deprecated; "
        "pass a JobActivatorContext",
        DeprecationWarning,
        stacklevel=3,
    )


class ContainerJobActivator:
    """Job activator that resolves jobs and their dependencies through a DI container.

    Every scope wraps a child scope of the container; closing it disposes the
    scoped and transient instances resolved for the job while singletons stay
    alive. Resolution and disposal errors are never caught here.
    """

    def __init__(self, container: ServiceProvider) -> None:
        if container is None:
            msg = "container must not be None"
            raise ValueError(msg)
        self._container = container

    @property
    def container(self) -> ServiceProvider:
        return self._container

    def activate_job(self, job_type: type) -> object | None:
        return self._container.get_service(job_type)

    def begin_scope(self, context: JobActivatorContext | None = None) -> JobActivatorScope:
        if context is None:
            _warn_legacy_begin_scope(self)
        return self._create_scope()

    def _create_scope(self) -> JobActivatorScope:
        return _ContainerJobActivatorScope(self._container.create_scope())


class _ContainerJobActivatorScope(JobActivatorScope):
    def __init__(self, service_scope: ServiceScope) -> None:
        super().__init__()
        self._service_scope = service_scope

    def resolve(self, job_type: type) -> object | None:
        return self._service_scope.get_service(job_type)

    def dispose_scope(self) -> None:
        self._service_scope.close()


class DefaultJobActivator:
    """Activator for jobs that are not container-managed: calls the type with no arguments."""

    def activate_job(self, job_type: type) -> object | None:
        return job_type()

    def begin_scope(self, context: JobActivatorContext | None = None) -> JobActivatorScope:
        if context is None:
            _warn_legacy_begin_scope(self)
        return _SimpleJobActivatorScope(self)


class _SimpleJobActivatorScope(JobActivatorScope):
    """Tracks the instances it activates and closes the disposable ones, newest first."""

    def __init__(self, activator: DefaultJobActivator) -> None:
        super().__init__()
        self._activator = activator
        self._exit_stack = ExitStack()

    def resolve(self, job_type: type) -> object | None:
        instance = self._activator.activate_job(job_type)
        if is_disposable(instance):
            self._exit_stack.callback(instance.close)
        return instance

    def dispose_scope(self) -> None:
        logger.debug("Disposing default activator scope %#x", id(self))
        self._exit_stack.close()
