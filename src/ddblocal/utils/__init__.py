"""Utility modules for the DynamoDB Local fixture."""

from .async_helpers import run_in_executor
from .logging import setup_logging

__all__ = [
    "setup_logging",
    "run_in_executor",
]
