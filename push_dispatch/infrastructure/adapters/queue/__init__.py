"""Job queue adapters."""

from push_dispatch.infrastructure.adapters.queue.redis_job_queue import RedisJobQueue

__all__: list[str] = ["RedisJobQueue"]
