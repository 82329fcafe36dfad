"""
Gestión de la base de datos (SQLAlchemy):
- Crea engine + scoped_session.
- Activa PRAGMA foreign_keys en SQLite.
- init_db(): crea las tablas con el ORM.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import scoped_session, sessionmaker

from facturas import config

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
SessionLocal: Optional[scoped_session] = None


def _safe_sqlite_url(db_url: str) -> str:
    """
    Si es SQLite en archivo, garantiza que el directorio exista.
    Las rutas relativas se resuelven contra el cwd.
    """
    prefix = "sqlite:///"
    if not db_url.startswith(prefix) or db_url == "sqlite:///:memory:":
        return db_url
    path = Path(db_url[len(prefix):])
    if not path.is_absolute():
        path = Path.cwd() / path
    path.parent.mkdir(parents=True, exist_ok=True)
    # Formato POSIX para evitar barras invertidas en la URI
    return f"sqlite:///{path.resolve().as_posix()}"


def _is_sqlite(engine: Engine) -> bool:
    return engine.url.get_backend_name() == "sqlite"


def get_engine() -> Engine:
    """
    Crea (o retorna) el Engine global. Para SQLite fuerza foreign_keys=ON.
    """
    global _engine
    if _engine is not None:
        return _engine

    db_url = _safe_sqlite_url(config.database_url())

    kw = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgresql"):
        kw.update({"pool_size": 5, "max_overflow": 5})
    _engine = create_engine(db_url, **kw)

    if _is_sqlite(_engine):
        @event.listens_for(_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    logger.debug("Engine creado para %s", _engine.url.render_as_string(hide_password=True))
    return _engine


def get_session() -> scoped_session:
    """Retorna un scoped_session global para uso en repos/servicios."""
    global SessionLocal
    if SessionLocal is None:
        engine = get_engine()
        SessionLocal = scoped_session(
            sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
        )
    return SessionLocal


def new_session():
    """Sesión independiente (no ligada al scoped_session); útil para escritores concurrentes."""
    return sessionmaker(bind=get_engine(), autoflush=False, future=True)()


def init_db() -> None:
    """Crea las tablas definidas en los modelos (no falla si ya existen)."""
    engine = get_engine()
    _ = get_session()

    # Carga diferida para evitar import circular
    from .models import Base  # noqa: WPS433

    Base.metadata.create_all(bind=engine)


def dispose_engine() -> None:
    """Cierra el engine y limpia el scoped_session (útil para tests)."""
    global _engine, SessionLocal
    if SessionLocal is not None:
        SessionLocal.remove()
        SessionLocal = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
