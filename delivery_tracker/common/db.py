from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

_engine_cache: dict[str, Engine] = {}
_session_factory_cache: dict[str, sessionmaker[Session]] = {}


def _ensure_engine(database_url: str) -> Engine:
    if database_url not in _engine_cache:
        _engine_cache[database_url] = create_engine(database_url, future=True)
    return _engine_cache[database_url]


def _ensure_sessionmaker(database_url: str) -> sessionmaker[Session]:
    if database_url not in _session_factory_cache:
        engine = _ensure_engine(database_url)
        _session_factory_cache[database_url] = sessionmaker(engine, expire_on_commit=False)
    return _session_factory_cache[database_url]


@contextmanager
def session_scope(database_url: str) -> Iterator[Session]:
    factory = _ensure_sessionmaker(database_url)
    with factory() as session:
        yield session


def dispose_engine(database_url: str) -> None:
    _session_factory_cache.pop(database_url, None)
    engine = _engine_cache.pop(database_url, None)
    if engine is not None:
        engine.dispose()
