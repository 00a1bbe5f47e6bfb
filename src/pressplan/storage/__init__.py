"""Persistence: assignment log and JSON shop documents."""

from pressplan.storage.assignment_log import AssignmentLog, AssignmentLogError, restore_store
from pressplan.storage.loader import ShopDocument, load_document, parse_document

__all__ = [
    "AssignmentLog",
    "AssignmentLogError",
    "restore_store",
    "ShopDocument",
    "load_document",
    "parse_document",
]
