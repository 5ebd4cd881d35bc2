"""Pydantic models for annotations and the HTTP API."""
