"""Request middleware and exception handlers."""
