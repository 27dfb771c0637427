"""Observability infrastructure: structured logging and job correlation.

- Structured JSON or console logging with structlog
- Correlation ID carried through contextvars, one per processed job

Usage:
    from push_dispatch.infrastructure.observability import (
        configure_structlog,
        correlation_scope,
    )

    # At startup
    configure_structlog(environment="production")

    # Per job
    with correlation_scope(str(job.id)):
        await handler(job)
"""

from push_dispatch.infrastructure.observability.correlation import (
    correlation_id_processor,
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from push_dispatch.infrastructure.observability.logging import (
    configure_structlog,
    get_logger_for_service,
)

__all__: list[str] = [
    "configure_structlog",
    "correlation_id_processor",
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "get_logger_for_service",
    "set_correlation_id",
]
