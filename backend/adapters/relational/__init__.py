from backend.adapters.relational.base import AbstractRelationalStore, Params, Row
from backend.adapters.relational.postgres import UNIQUE_VIOLATION, PostgresStore

__all__ = ["AbstractRelationalStore", "Params", "PostgresStore", "Row", "UNIQUE_VIOLATION"]
