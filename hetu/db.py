import json
import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import get_engine_cache_size
from .util.lru import BoundedLRU


logger = logging.getLogger(__name__)

_engines: Optional[BoundedLRU[str, Engine]] = None


def _dispose_engine(url: str, engine: Engine) -> None:
    logger.debug("Disposing evicted database engine for %s", engine.url.render_as_string(hide_password=True))
    engine.dispose()


def get_engine_cache() -> BoundedLRU[str, Engine]:
    global _engines
    if _engines is None:
        _engines = BoundedLRU(get_engine_cache_size(), on_evict=_dispose_engine)
    return _engines


def reset_engine_cache(capacity: Optional[int] = None) -> BoundedLRU[str, Engine]:
    """Drop every cached engine, optionally resizing the cache."""

    global _engines
    if _engines is not None:
        for url in _engines.keys():
            engine = _engines.pop(url)
            if engine is not None:
                engine.dispose()
    _engines = BoundedLRU(capacity or get_engine_cache_size(), on_evict=_dispose_engine)
    return _engines


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///./dev.db")


def _create_engine(database_url: str) -> Engine:
    connect_args: Dict[str, Any] = {}
    engine_kwargs: Dict[str, Any] = {"echo": False}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url == "sqlite://":
            engine_kwargs["poolclass"] = StaticPool
    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


def get_engine(database_url: Optional[str] = None) -> Engine:
    """Return a SQLModel engine for ``database_url``, creating it if needed."""

    url = database_url or get_database_url()
    return get_engine_cache().get_or_create(url, lambda: _create_engine(url))


def init_db() -> None:
    """Optionally create all tables in dev environments.

    In production the tables live in the hosted Postgres instance. Enable this
    dev helper by setting SQLMODEL_CREATE_ALL=1 (or 'true').
    """
    from . import models  # noqa: F401

    database_url = get_database_url()
    engine = get_engine()
    if database_url == "sqlite://":
        # In-memory sqlite for tests/dev: reset schema each init for isolation
        SQLModel.metadata.drop_all(engine)
        SQLModel.metadata.create_all(engine)
        return
    if os.getenv("SQLMODEL_CREATE_ALL", "0") in ("1", "true", "TRUE"):
        SQLModel.metadata.create_all(engine)


def _configure_rls(session: Session, claims: Optional[Dict[str, Any]]) -> bool:
    if not is_postgres():
        return False

    try:
        if claims:
            session.exec(
                text("SELECT set_config('request.jwt.claims', :claims, false)"),
                params={"claims": json.dumps(claims, default=str)},
            )
        else:
            session.exec(text("RESET request.jwt.claims"))
        return True
    except Exception:  # noqa: BLE001
        logger.debug("Unable to configure request.jwt.claims session variable", exc_info=True)
        return False


def _reset_rls(session: Session) -> None:
    if not is_postgres():
        return
    try:
        session.exec(text("RESET request.jwt.claims"))
    except Exception:  # noqa: BLE001
        logger.debug("Unable to reset request.jwt.claims session variable", exc_info=True)


def _session_scope(claims: Optional[Dict[str, Any]] = None) -> Iterator[Session]:
    with Session(get_engine()) as session:
        applied = _configure_rls(session, claims)
        try:
            yield session
        finally:
            if applied:
                _reset_rls(session)


@contextmanager
def get_session_ctx(claims: Optional[Dict[str, Any]] = None) -> Iterator[Session]:
    yield from _session_scope(claims)


def get_session(request: Request) -> Iterator[Session]:
    """Request-scoped session carrying the caller's JWT claims for RLS.

    Route guards run before this dependency and leave the resolved identity
    on ``request.state.current_user``.
    """

    user = getattr(request.state, "current_user", None)
    claims = user.get("claims") if isinstance(user, dict) else None
    yield from _session_scope(claims)


def is_postgres() -> bool:
    try:
        name = get_engine().url.get_backend_name()
    except Exception:  # noqa: BLE001
        database_url = get_database_url()
        name = (database_url.split(":", 1)[0] if ":" in database_url else "")
    return name.startswith("postgres")
