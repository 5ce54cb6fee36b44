"""Trace analysis for guided mutation."""

from .reflector import BaseReflector, FAILURE_EDIT_TABLE, Reflector, failure_category

__all__ = ["BaseReflector", "FAILURE_EDIT_TABLE", "Reflector", "failure_category"]
