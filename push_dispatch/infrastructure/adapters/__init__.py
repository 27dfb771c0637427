"""Production adapters for the application ports.

- persistence: PostgreSQL notification repository and delivery ledger
- queue: Redis job queue
- delivery: FCM and APNs push transports
"""
