import time
from datetime import timedelta

from sqlmodel import Session, select

from eduflow import models
from eduflow.database import engine
from eduflow.services import TOKEN_TTL, AuthService, TokenAuthority
from eduflow.utils.token_sweeper import TokenSweeper


def _seed(clock):
    with Session(engine) as session:
        uid = AuthService(session).register('sweep', 'pw')
        authority = TokenAuthority(session, clock=clock)
        live = authority.issue(uid)
        dead = authority.issue(uid)
        authority.revoke(dead)
    return live


def _count():
    with Session(engine) as session:
        return len(session.exec(select(models.SessionToken)).all())


def test_run_once_removes_revoked_tokens(clock):
    _seed(clock)
    sweeper = TokenSweeper(engine, interval_seconds=60, clock=clock)
    assert sweeper.run_once() == 1
    assert _count() == 1


def test_run_once_removes_expired_tokens(clock):
    _seed(clock)
    clock.advance(TOKEN_TTL + timedelta(minutes=1))
    assert TokenSweeper(engine, interval_seconds=60, clock=clock).run_once() == 2
    assert _count() == 0


def test_background_thread_sweeps_and_stops(clock):
    _seed(clock)
    sweeper = TokenSweeper(engine, interval_seconds=0.05, clock=clock)
    sweeper.start()
    try:
        deadline = time.time() + 5
        while time.time() < deadline and _count() != 1:
            time.sleep(0.05)
    finally:
        sweeper.stop()
    assert _count() == 1
    assert not sweeper.running


def test_purge_script():
    import importlib.util
    from pathlib import Path

    # the script runs on the real clock
    _seed(models.utcnow)
    path = Path(__file__).resolve().parents[1] / 'scripts' / 'purge_tokens.py'
    spec = importlib.util.spec_from_file_location('purge_tokens', path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    assert module.main([]) == 1
    assert _count() == 1


def test_failed_sweep_is_logged_and_retried(caplog):
    sweeper = TokenSweeper(engine, interval_seconds=0.05)
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError('disk on fire')
        return 0

    sweeper.run_once = flaky
    sweeper.start()
    try:
        deadline = time.time() + 5
        while time.time() < deadline and len(calls) < 3:
            time.sleep(0.05)
        assert sweeper.running
    finally:
        sweeper.stop()
    assert len(calls) >= 3
    assert any(r.exc_info and 'token sweep failed' in r.getMessage() for r in caplog.records)
