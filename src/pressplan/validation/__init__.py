"""Validation module for detecting assignment conflicts."""

from pressplan.validation.validator import Conflict, ConflictDetector, ConflictType

__all__ = ["Conflict", "ConflictDetector", "ConflictType"]
