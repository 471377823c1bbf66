"""Pydantic models for all CRDs."""

# Import all models to ensure they're registered
from . import cluster
from . import database

__all__ = ["cluster", "database"]
