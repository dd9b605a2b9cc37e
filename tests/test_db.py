from unittest.mock import MagicMock

from hetu import db


def test_configure_rls_sets_claims(monkeypatch):
    monkeypatch.setattr(db, "is_postgres", lambda: True)
    session = MagicMock()

    applied = db._configure_rls(session, {"sub": "user-123", "role": "authenticated"})

    assert applied is True
    assert session.exec.call_count == 1
    args, kwargs = session.exec.call_args
    clause = args[0]
    assert getattr(clause, "text", str(clause)) == "SELECT set_config('request.jwt.claims', :claims, false)"
    assert '"sub": "user-123"' in kwargs["params"]["claims"]


def test_configure_rls_resets_for_anonymous(monkeypatch):
    monkeypatch.setattr(db, "is_postgres", lambda: True)
    session = MagicMock()

    assert db._configure_rls(session, None) is True
    clause = session.exec.call_args[0][0]
    assert getattr(clause, "text", str(clause)) == "RESET request.jwt.claims"


def test_configure_rls_skipped_outside_postgres():
    session = MagicMock()
    assert db._configure_rls(session, {"sub": "x"}) is False
    session.exec.assert_not_called()


def test_engine_cache_is_bounded(tmp_path):
    cache = db.reset_engine_cache(capacity=2)
    urls = [f"sqlite:///{tmp_path}/db{i}.sqlite" for i in range(3)]
    engines = [db.get_engine(url) for url in urls]

    assert db.get_engine(urls[2]) is engines[2]
    assert urls[0] not in cache
    assert cache.keys() == [urls[1], urls[2]]


def test_engine_cache_reuses_engine_per_url():
    db.reset_engine_cache(capacity=3)
    assert db.get_engine("sqlite://") is db.get_engine("sqlite://")


def test_evicted_engine_is_disposed(monkeypatch):
    disposed = []
    monkeypatch.setattr(db, "_dispose_engine", lambda url, engine: disposed.append(url))
    db.reset_engine_cache(capacity=1)
    db.get_engine("sqlite:///a.sqlite")
    db.get_engine("sqlite:///b.sqlite")
    assert disposed == ["sqlite:///a.sqlite"]


def test_engine_cache_size_from_environment(monkeypatch):
    from hetu.config import get_engine_cache_size

    monkeypatch.setenv("DB_ENGINE_CACHE_SIZE", "3")
    get_engine_cache_size.cache_clear()
    assert db.reset_engine_cache().capacity == 3
