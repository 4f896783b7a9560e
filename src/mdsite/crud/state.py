"""BuildState persistence: load once at run start, replace atomically at run end.

The state lives in a small SQLite database. It is never updated in place: a
new database is written next to the old one and swapped in with os.replace.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from mdsite.core.errors import SchedulerStateMismatch
from mdsite.crud.database import has_tables, init_db, make_engine
from mdsite.crud.tables import DocumentRecord, PageRecord, StateMeta


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
STATE_DIR = ".mdsite"
STATE_FILE = "state.db"


class StateStamp(BaseModel):
    """Versions that must match for a prior BuildState to be trusted."""
    model_config = ConfigDict(frozen=True)

    schema_version: Optional[int] = SCHEMA_VERSION
    renderer_version: str = ""
    template_hash: str = ""


class DocRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_path: str
    content_hash: str
    output_hash: str
    pages: tuple[str, ...] = ()


class BuildState(BaseModel):
    """slug -> (content hash, output hash) records plus index page output hashes."""
    model_config = ConfigDict(frozen=True)

    stamp: StateStamp = StateStamp()
    documents: dict[str, DocRecord] = {}
    pages: dict[str, str] = {}


def state_path(output_dir: Path) -> Path:
    return Path(output_dir) / STATE_DIR / STATE_FILE


def load_state(path: Path) -> Optional[BuildState]:
    """Load BuildState from path; None when no state exists yet.

    A state written by another schema version comes back with its stamp only
    (records are not trusted). An unreadable file raises SchedulerStateMismatch.
    """
    if not path.exists():
        return None
    engine = make_engine(path)
    try:
        if not has_tables(engine, StateMeta.__tablename__):
            raise SchedulerStateMismatch(f"Build state at {path} has no metadata table")
        with Session(engine) as session:
            meta = {m.key: m.value for m in session.exec(select(StateMeta)).all()}
            version = int(meta["schema_version"]) if meta.get("schema_version", "").isdigit() else None
            stamp = StateStamp(
                schema_version=version,
                renderer_version=meta.get("renderer_version", ""),
                template_hash=meta.get("template_hash", ""),
            )
            if version != SCHEMA_VERSION:
                logger.info("build state schema %s != %s; records ignored", version, SCHEMA_VERSION)
                return BuildState(stamp=stamp)
            documents = {
                r.slug: DocRecord(
                    source_path=r.source_path,
                    content_hash=r.content_hash,
                    output_hash=r.output_hash,
                    pages=tuple(r.pages or ()),
                )
                for r in session.exec(select(DocumentRecord)).all()
            }
            pages = {r.key: r.output_hash for r in session.exec(select(PageRecord)).all()}
    except SQLAlchemyError as e:
        raise SchedulerStateMismatch(f"Unreadable build state at {path}: {e}") from e
    finally:
        engine.dispose()
    return BuildState(stamp=stamp, documents=documents, pages=pages)


def save_state(path: Path, state: BuildState) -> None:
    """Write state to a temp database and atomically replace path with it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + f".tmp-{os.getpid()}")
    tmp.unlink(missing_ok=True)
    engine = make_engine(tmp)
    try:
        init_db(engine)
        with Session(engine) as session:
            stamp = state.stamp
            session.add(StateMeta(key="schema_version", value=str(stamp.schema_version)))
            session.add(StateMeta(key="renderer_version", value=stamp.renderer_version))
            session.add(StateMeta(key="template_hash", value=stamp.template_hash))
            for slug in sorted(state.documents):
                rec = state.documents[slug]
                session.add(DocumentRecord(
                    slug=slug,
                    source_path=rec.source_path,
                    content_hash=rec.content_hash,
                    output_hash=rec.output_hash,
                    pages=list(rec.pages),
                ))
            for key in sorted(state.pages):
                session.add(PageRecord(key=key, output_hash=state.pages[key]))
            session.commit()
    except Exception:
        engine.dispose()
        tmp.unlink(missing_ok=True)
        raise
    engine.dispose()
    os.replace(tmp, path)
    logger.debug("build state written: %d documents, %d pages", len(state.documents), len(state.pages))
