"""hookrelay — relay webhooks to broker queues chosen by a routing script.

Packages:
- scripting: routing-module host, pool, request view
- admission: HTTP handlers and request normalization
- delivery: single-slot channel and Redis Streams publisher
"""

__version__ = "0.1.0"
