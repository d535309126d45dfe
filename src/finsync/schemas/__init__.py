"""Pydantic request/response and upstream payload schemas."""
