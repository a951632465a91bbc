"""Pydantic request and response schemas for the admin API."""
