"""
Persistence layer: connection handling, query building, pagination and
the Active Record model base.
"""

from .database import Database, Connection
from .query import QueryBuilder, UnsafeMutationError, OPERATORS
from .pagination import LengthAwarePage, SimplePage, build_links
from .model import Model, ModelNotFoundError, MassAssignmentError, diff_attributes

__all__ = [
    "Database",
    "Connection",
    "QueryBuilder",
    "UnsafeMutationError",
    "OPERATORS",
    "LengthAwarePage",
    "SimplePage",
    "build_links",
    "Model",
    "ModelNotFoundError",
    "MassAssignmentError",
    "diff_attributes",
]
