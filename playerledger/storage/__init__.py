from ._schema import SCHEMA_VERSION, SCHEMA_SQL
from ._tx import Transactor
from .accounts import AccountRepo, fetch_account, raise_personal_best, write_spent, write_window
from .scores import ScoreRepo, insert_entry
from .manager import StorageManager

__all__ = [
    "SCHEMA_VERSION",
    "SCHEMA_SQL",
    "Transactor",
    "AccountRepo",
    "ScoreRepo",
    "StorageManager",
    "fetch_account",
    "raise_personal_best",
    "write_spent",
    "write_window",
    "insert_entry",
]
