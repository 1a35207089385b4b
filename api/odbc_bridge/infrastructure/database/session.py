"""
Gestion de sesiones del almacen local de configuracion.

El pipeline corre en threads del scheduler, por eso el almacen usa el
engine sincrono de SQLAlchemy (SQLite por defecto).
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from odbc_bridge.core.config import settings


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(database_url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    SQLite se comparte entre threads del scheduler y de la API.
    """
    args = {"echo": settings.DEBUG, "future": True}
    if database_url.startswith("sqlite"):
        args["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # En memoria: una unica conexion compartida por todos los threads
            args["poolclass"] = StaticPool
    else:
        args["pool_pre_ping"] = True
    return args


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **_create_engine_args(database_url))


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, future=True)


# Engine y session factory de la aplicacion
engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """
    Sesion transaccional: commit al salir, rollback ante error.
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(target: Engine = engine) -> None:
    """Inicializa la base de datos creando todas las tablas."""
    from odbc_bridge.infrastructure.database import models  # noqa: F401  registra los modelos

    Base.metadata.create_all(bind=target)


def close_db(target: Engine = engine) -> None:
    """Cierra las conexiones de la base de datos."""
    target.dispose()
