"""Background workers for push dispatch."""

from push_dispatch.workers.dispatch_worker import DispatchWorker, WorkerMetrics

__all__: list[str] = ["DispatchWorker", "WorkerMetrics"]
