from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ._activator import JobActivatorContext


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ._activator import JobActivator


class JobActivationError(RuntimeError):
    pass


def perform_job(
    activator: JobActivator,
    job_type: type,
    method: str = "perform",
    *args: Any,
    context: JobActivatorContext | None = None,
    **kwargs: Any,
) -> Any:
    """Run one job the way a worker does.

    Opens a scope for the job, resolves `job_type` through it and calls
    `method` on the instance with the given arguments. The scope is closed
    whether the job returns or raises.
    """
    if context is None:
        context = JobActivatorContext(job_type=job_type)

    with activator.begin_scope(context) as scope:
        instance = scope.resolve(job_type)
        if instance is None:
            msg = f"{type(activator).__name__} returned None for job type {job_type.__name__}"
            raise JobActivationError(msg)

        logger.debug("Performing %s.%s (job id: %s)", job_type.__name__, method, context.job_id)
        return getattr(instance, method)(*args, **kwargs)
