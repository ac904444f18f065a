import threading

import pytest

from fitrack.auth.session import CookieSigner, MemorySessionBackend, SessionRecord, SessionStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _alice(**kw) -> SessionRecord:
    return SessionRecord(user_id=1, username="alice", email="alice@x.com", **kw)


def test_create_resolve_destroy():
    store = SessionStore()
    token = store.create(_alice())
    assert store.resolve(token).user_id == 1
    store.destroy(token)
    assert store.resolve(token) is None


def test_destroy_is_idempotent():
    store = SessionStore()
    token = store.create(_alice())
    store.destroy(token)
    store.destroy(token)
    store.destroy(None)
    store.destroy("never-issued")
    assert store.resolve(token) is None


def test_tokens_are_unique_and_opaque():
    store = SessionStore()
    tokens = {store.create(_alice()) for _ in range(50)}
    assert len(tokens) == 50
    assert all("alice" not in t and len(t) >= 32 for t in tokens)


def test_same_user_may_hold_several_sessions():
    store = SessionStore()
    a = store.create(_alice())
    b = store.create(_alice())
    store.destroy(a)
    assert store.resolve(a) is None
    assert store.resolve(b).username == "alice"


def test_session_expires_after_max_age():
    clock = FakeClock()
    store = SessionStore(max_age=60, clock=clock)
    token = store.create(_alice())
    clock.now += 59
    assert store.resolve(token) is not None
    clock.now += 1
    assert store.resolve(token) is None


def test_default_lifetime_is_24_hours():
    clock = FakeClock()
    store = SessionStore(clock=clock)
    token = store.create(_alice())
    clock.now += 24 * 60 * 60 - 1
    assert store.resolve(token) is not None
    clock.now += 1
    assert store.resolve(token) is None


def test_update_keeps_expiry_and_rejects_dead_tokens():
    clock = FakeClock()
    store = SessionStore(max_age=60, clock=clock)
    token = store.create(_alice())
    clock.now += 30
    assert store.update(token, _alice(profile={"first_name": "Alice"}))
    assert store.resolve(token).profile == {"first_name": "Alice"}
    clock.now += 30
    assert store.resolve(token) is None
    assert not store.update(token, _alice())
    assert not store.update("unknown", _alice())


class InterruptingBackend(MemorySessionBackend):
    """Runs a callback just before each read or replace, standing in for another request."""

    def __init__(self):
        super().__init__()
        self.before = None

    def _interrupt(self):
        if self.before is not None:
            cb, self.before = self.before, None
            cb()

    def get(self, token):
        self._interrupt()
        return super().get(token)

    def replace(self, token, record, now):
        self._interrupt()
        return super().replace(token, record, now)


def test_update_cannot_revive_a_session_destroyed_meanwhile():
    backend = InterruptingBackend()
    store = SessionStore(backend)
    token = store.create(_alice())
    backend.before = lambda: store.destroy(token)

    assert not store.update(token, _alice(profile={"first_name": "Alice"}))
    assert store.resolve(token) is None
    assert len(backend) == 0


def test_update_racing_logout_leaves_session_gone():
    store = SessionStore()
    token = store.create(_alice())
    started = threading.Event()

    def updater():
        started.set()
        for i in range(2000):
            store.update(token, _alice(profile={"n": i}))

    th = threading.Thread(target=updater)
    th.start()
    started.wait()
    store.destroy(token)
    th.join()

    assert store.resolve(token) is None


def test_purge_expired():
    clock = FakeClock()
    backend = MemorySessionBackend()
    store = SessionStore(backend, max_age=10, clock=clock)
    store.create(_alice())
    clock.now += 5
    live = store.create(_alice())
    clock.now += 6
    assert store.purge_expired() == 1
    assert len(backend) == 1
    assert store.resolve(live) is not None


def test_record_never_carries_password_material():
    data = _alice(profile={"first_name": "A"}).to_dict()
    assert set(data) == {"id", "username", "email", "profile"}


def test_concurrent_access():
    store = SessionStore()
    tokens = []
    lock = threading.Lock()

    def worker(i):
        for _ in range(100):
            t = store.create(SessionRecord(user_id=i, username=f"u{i}", email=f"u{i}@x.com"))
            assert store.resolve(t).user_id == i
            with lock:
                tokens.append(t)
            store.destroy(t)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert len(tokens) == 800
    assert len(store.backend) == 0


def test_cookie_signer_round_trip_and_tamper():
    signer = CookieSigner("secret")
    value = signer.sign("tok123")
    assert value != "tok123"
    assert signer.unsign(value) == "tok123"
    assert signer.unsign(value + "x") is None
    assert signer.unsign("tok123") is None
    assert signer.unsign("") is None
    assert CookieSigner("other").unsign(value) is None


def test_cookie_signer_needs_a_secret():
    with pytest.raises(RuntimeError):
        CookieSigner("").sign("tok")
