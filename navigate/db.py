from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from navigate.config import get_settings
from navigate.models import Base

_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal = None


def init_db(db_path: str | Path | None = None) -> None:
    """Open (or create) the presets database; ``":memory:"`` gives a private in-memory DB."""
    global _engine, _SessionLocal
    with _lock:
        if _engine is not None:
            _engine.dispose()
        if db_path is None:
            db_path = get_settings().database_path
        if str(db_path) == ":memory:":
            _engine = create_engine(
                "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
            )
        else:
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            _engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
        Base.metadata.create_all(_engine)
        _SessionLocal = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)
        _seed_presets(_engine)


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    Usage (MCP server, scripts, etc.)::

        with session_scope() as session:
            ...
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def session_generator() -> Generator[Session, None, None]:
    """Generator-based session suitable for FastAPI ``Depends()``."""
    with session_scope() as session:
        yield session


def _seed_presets(engine: Engine) -> None:
    """Seed the built-in filter presets if the table is empty."""
    with engine.connect() as conn:
        count = conn.execute(text("SELECT COUNT(*) FROM filter_presets")).scalar()
        if count:
            return
    from navigate.filters import DEFAULT_PRESETS
    with engine.begin() as conn:
        for key, (name, description, spec) in DEFAULT_PRESETS.items():
            conn.execute(text(
                "INSERT INTO filter_presets (key, name, description, filters_json, is_default) "
                "VALUES (:key, :name, :description, :filters_json, 1)"
            ), {
                "key": key,
                "name": name,
                "description": description,
                "filters_json": json.dumps(spec.model_dump(mode="json")),
            })
