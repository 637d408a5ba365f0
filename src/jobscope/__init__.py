"""Dependency injection for background jobs.

This package activates background jobs through a dependency injection
container: every job execution gets its own resolution scope, and whatever the
scope created is disposed when the job finishes, while singletons live on.

Exports:
- `Container`: DI container supporting type/factory/instance registration and resolution.
- `Lifetime`: Enum for controlling object lifetimes (singleton, scoped or transient).
- `Scope`: Child container owning the scoped and transient instances it resolves.
- `ContainerJobActivator`: Job activator backed by a container.
- `DefaultJobActivator`: Job activator calling the job type without arguments.
- `JobActivatorScope`: Scope handle for one job execution.
- `GlobalConfiguration`: Holds the activator used by the worker process.
- `perform_job`: Resolve and run a job inside a scope that is always closed.
"""

from ._activator import (
    ContainerJobActivator,
    DefaultJobActivator,
    JobActivator,
    JobActivatorContext,
    JobActivatorScope,
    ServiceProvider,
    ServiceScope,
)
from ._configuration import GlobalConfiguration, global_configuration, use_container_job_activator
from ._container import Container, Disposable, Lifetime, ResolutionError, Scope, ScopeDisposedError
from ._performer import JobActivationError, perform_job


__all__ = [
    "Container",
    "ContainerJobActivator",
    "DefaultJobActivator",
    "Disposable",
    "GlobalConfiguration",
    "JobActivationError",
    "JobActivator",
    "JobActivatorContext",
    "JobActivatorScope",
    "Lifetime",
    "ResolutionError",
    "Scope",
    "ScopeDisposedError",
    "ServiceProvider",
    "ServiceScope",
    "global_configuration",
    "perform_job",
    "use_container_job_activator",
]
