"""Example routing module.

Routes GitHub and Stripe webhooks to their own queues and rejects the rest.
CONFIG and print are provided by the relay.
"""

queue_names = ["github", "stripe", "unsorted"]

_TOKEN = CONFIG.get("shared_token", "")  # noqa: F821


def handler(request):
    if _TOKEN and request.headers.get("x-relay-token") != _TOKEN:
        print("rejecting", request.request_id, "from", request.origin)
        return None

    if "x-github-event" in request.headers:
        return "github"
    if "stripe-signature" in request.headers:
        return "stripe"
    if request.mimetype and request.mimetype.startswith("application/json"):
        return "unsorted"
    return None
