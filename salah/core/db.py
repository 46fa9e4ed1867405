"""
SQLite storage: one engine per process, sessions through session_scope().
"""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()

DEFAULT_DB_PATH = Path.home() / ".salah" / "salah.db"
IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine = None
_session_factory = None


def database_url(config_data: Optional[dict]) -> str:
    """sqlite URL for config's database.path (default ~/.salah/salah.db), creating its directory."""
    configured = ((config_data or {}).get("database") or {}).get("path")
    path = Path(configured).expanduser().resolve() if configured else DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def init_db(config_data: Optional[dict] = None, db_url: Optional[str] = None) -> None:
    """Create the engine and tables once; later calls are no-ops until dispose_db()."""
    global _engine, _session_factory
    if _engine is not None:
        return

    url = db_url or database_url(config_data)
    options = {}
    if url in IN_MEMORY_URLS:
        # Every thread must share the one in-memory database
        options = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    _engine = create_engine(url, future=True, **options)

    # Table classes register themselves on Base when imported
    from salah.core import models as _core_models  # noqa: F401
    from salah.plugins.prayer import models as _prayer_models  # noqa: F401

    Base.metadata.create_all(_engine)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info(f"Database ready: {url}")


def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit when the block succeeds, roll back and re-raise when it fails."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
