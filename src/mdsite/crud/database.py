"""SQLite engine helpers for the BuildState database"""

from pathlib import Path

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from mdsite.crud import tables  # noqa: F401  (registers tables on SQLModel.metadata)


def make_engine(path: Path) -> Engine:
    return create_engine(f"sqlite:///{path}", echo=False)


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def has_tables(engine: Engine, *names: str) -> bool:
    """True when every named table exists."""
    existing = set(inspect(engine).get_table_names())
    return all(n in existing for n in names)
