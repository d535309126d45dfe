"""Deduplicated sync job queue."""
