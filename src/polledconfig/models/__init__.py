"""Pydantic settings models."""
