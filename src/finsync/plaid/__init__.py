"""Upstream aggregator integration: feed client, reconciler and webhook verification."""
