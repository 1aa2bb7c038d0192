"""Delivery path: single-slot channel and the Redis Streams publisher."""

from hookrelay.delivery.channel import DeliveryChannel
from hookrelay.delivery.publisher import Publisher, connect

__all__ = ["DeliveryChannel", "Publisher", "connect"]
