"""Routing-script integration.

Modules:
- host: loads the routing module and runs its handler
- pool: round-robin over independently loaded hosts, one lock per host
- view: read-only request view passed to handlers
- output: ``print`` shim that logs
- decision: Accept / Reject / Error outcomes
"""

from hookrelay.scripting.decision import Accept, Error, Reject, RoutingDecision
from hookrelay.scripting.host import ScriptHost, prepend_sandbox_path
from hookrelay.scripting.pool import ScriptPool
from hookrelay.scripting.view import RequestView

__all__ = [
    "Accept",
    "Error",
    "Reject",
    "RequestView",
    "RoutingDecision",
    "ScriptHost",
    "ScriptPool",
    "prepend_sandbox_path",
]
