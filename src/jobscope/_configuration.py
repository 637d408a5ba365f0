from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from ._activator import ContainerJobActivator, DefaultJobActivator


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from typing import Self

    from ._activator import JobActivator, ServiceProvider


class GlobalConfiguration:
    """Holds the job activator a worker process uses.

    Falls back to `DefaultJobActivator` until another activator is installed.
    Methods return the configuration so calls can be chained.
    """

    def __init__(self) -> None:
        self._activator: JobActivator | None = None
        self._lock = threading.Lock()

    @property
    def activator(self) -> JobActivator:
        with self._lock:
            if self._activator is None:
                self._activator = DefaultJobActivator()
            return self._activator

    def use_activator(self, activator: JobActivator) -> Self:
        if activator is None:
            msg = "activator must not be None"
            raise ValueError(msg)

        with self._lock:
            self._activator = activator
        logger.info("Using %s as job activator", type(activator).__name__)
        return self

    def use_container_job_activator(self, container: ServiceProvider) -> Self:
        """Resolve jobs through `container` from now on."""
        return self.use_activator(ContainerJobActivator(container))


global_configuration = GlobalConfiguration()


def use_container_job_activator(
    configuration: GlobalConfiguration,
    container: ServiceProvider,
) -> GlobalConfiguration:
    """Tell `configuration` to use `container` as job activator.

    Raises `ValueError` when either argument is None.
    """
    if configuration is None:
        msg = "configuration must not be None"
        raise ValueError(msg)
    if container is None:
        msg = "container must not be None"
        raise ValueError(msg)

    return configuration.use_container_job_activator(container)
