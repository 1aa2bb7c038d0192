"""Webhook admission — turns HTTP requests into routed deliveries."""
