"""Platform push transports built on httpx."""

from push_dispatch.infrastructure.adapters.delivery.apns_adapter import (
    ApnsDeliveryAdapter,
)
from push_dispatch.infrastructure.adapters.delivery.fcm_adapter import (
    FcmDeliveryAdapter,
)

__all__: list[str] = ["ApnsDeliveryAdapter", "FcmDeliveryAdapter"]
