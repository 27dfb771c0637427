"""
Push Dispatch - notification intake, fan-out and delivery pipeline.

Accepts push-notification requests, deduplicates them by idempotency key,
fans them out to a recipient's devices and drives retries until delivery
succeeds, expires, or exhausts its retry budget.

Delivery semantics:
- At-least-once delivery attempts, deduplicated intake
- Append-only delivery ledger per (notification, device)
- Priority-tiered queuing with exponential backoff and jitter
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
