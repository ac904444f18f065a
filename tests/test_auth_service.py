import pytest
from sqlalchemy import text

from fitrack.auth import users
from fitrack.auth.service import INVALID_CREDENTIALS, MISSING_CREDENTIALS
from fitrack.errors import AuthenticationError, ConflictError, StorageFault, ValidationError

from conftest import STRONG_PASSWORD


def _register(auth, username="alice", email="alice@x.com", password=STRONG_PASSWORD, confirm=None, **kw):
    return auth.register(
        username=username,
        email=email,
        password=password,
        confirm_password=password if confirm is None else confirm,
        **kw,
    )


def test_register_returns_live_session(auth):
    outcome = _register(auth, first_name="Alice", last_name="Smith")
    assert outcome.success
    assert outcome.errors == []
    assert outcome.redirect_to == "/"
    assert outcome.session.username == "alice"
    assert outcome.session.profile == {"first_name": "Alice", "last_name": "Smith"}
    resolved = auth.sessions.resolve(outcome.token)
    assert resolved.user_id == outcome.session.user_id


def test_register_stores_a_salted_hash_not_the_password(auth, db):
    _register(auth)
    _register(auth, username="alice2", email="alice2@x.com")
    with db.begin() as conn:
        hashes = [r[0] for r in conn.execute(text("SELECT password_hash FROM users ORDER BY id"))]
        profiles = conn.execute(text("SELECT COUNT(*) FROM user_profiles")).scalar()
    assert len(hashes) == 2
    assert hashes[0] != hashes[1]
    assert all(STRONG_PASSWORD not in h and h.startswith("$argon2") for h in hashes)
    assert profiles == 2


def test_duplicate_username_is_a_username_conflict(auth):
    assert _register(auth).success
    outcome = _register(auth, email="other@x.com")
    assert not outcome.success
    assert isinstance(outcome.error, ConflictError)
    assert outcome.error.field == "username"
    assert outcome.errors == ["Username already taken"]
    assert outcome.form_data["email"] == "other@x.com"


def test_duplicate_email_is_an_email_conflict(auth):
    assert _register(auth).success
    outcome = _register(auth, username="bob")
    assert isinstance(outcome.error, ConflictError)
    assert outcome.error.field == "email"
    assert outcome.errors == ["Email already registered"]


def test_username_wins_when_both_collide(auth):
    assert _register(auth).success
    assert _register(auth, username="bob", email="bob@x.com").success
    outcome = _register(auth, username="bob", email="alice@x.com")
    assert outcome.error.field == "username"


def _counts(db):
    with db.begin() as conn:
        return (
            conn.execute(text("SELECT COUNT(*) FROM users")).scalar(),
            conn.execute(text("SELECT COUNT(*) FROM user_profiles")).scalar(),
        )


@pytest.mark.parametrize(
    "username, email, field",
    [("alice", "fresh@x.com", "username"), ("fresh", "alice@x.com", "email")],
)
def test_unique_constraint_maps_to_conflict(auth, db, username, email, field):
    assert _register(auth).success
    with pytest.raises(ConflictError) as exc:
        with db.begin() as conn:
            users.create_user(conn, username=username, email=email, password_hash="$argon2id$x")
    assert exc.value.field == field
    assert _counts(db) == (1, 1)


@pytest.mark.parametrize("email, field", [("other@x.com", "username"), ("alice@x.com", "email")])
def test_registration_losing_a_race_is_a_conflict(auth, db, monkeypatch, email, field):
    assert _register(auth).success
    # the duplicate slips past the lookup, as when two requests register at once
    monkeypatch.setattr(users, "find_conflict", lambda conn, username, email: None)
    username = "alice" if field == "username" else "bob"
    outcome = _register(auth, username=username, email=email)
    assert not outcome.success
    assert isinstance(outcome.error, ConflictError)
    assert outcome.error.field == field
    assert _counts(db) == (1, 1)


def test_validation_errors_are_collected_together(auth):
    outcome = auth.register(
        username="al",
        email="not-an-email",
        password="a",
        confirm_password="b",
        first_name="Al",
    )
    assert isinstance(outcome.error, ValidationError)
    assert outcome.errors == [
        "Username must be at least 3 characters",
        "Please enter a valid email address",
        "Password must be at least 8 characters long",
        "Password must contain at least one uppercase letter",
        "Password must contain at least one number",
        "Password must contain at least one special character",
        "Passwords do not match",
    ]
    assert outcome.form_data == {"username": "al", "email": "not-an-email", "first_name": "Al", "last_name": ""}
    assert outcome.session is None and outcome.token is None


def test_failed_registration_writes_nothing(auth, db):
    _register(auth, confirm="Different1!")
    with db.begin() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM users")).scalar() == 0


def test_login_unknown_user_and_wrong_password_look_the_same(auth):
    _register(auth)
    unknown = auth.login("nobody", STRONG_PASSWORD)
    wrong = auth.login("alice", "Wrong123!")
    assert not unknown.success and not wrong.success
    assert unknown.errors == wrong.errors == [INVALID_CREDENTIALS]
    assert type(unknown.error) is type(wrong.error) is AuthenticationError
    assert unknown.error.message.encode() == wrong.error.message.encode()


def test_login_success_loads_profile(auth):
    _register(auth, first_name="Alice")
    outcome = auth.login("alice", STRONG_PASSWORD)
    assert outcome.success
    assert outcome.session.username == "alice"
    assert outcome.session.email == "alice@x.com"
    assert outcome.session.profile["first_name"] == "Alice"
    assert auth.sessions.resolve(outcome.token) == outcome.session


def test_login_accepts_email(auth):
    _register(auth)
    assert auth.login("alice@x.com", STRONG_PASSWORD).success


@pytest.mark.parametrize("username, password", [("", STRONG_PASSWORD), ("alice", ""), ("  ", "")])
def test_login_requires_both_fields(auth, username, password):
    outcome = auth.login(username, password)
    assert outcome.errors == [MISSING_CREDENTIALS]
    assert isinstance(outcome.error, ValidationError)


def test_logout_destroys_session_and_is_idempotent(auth):
    outcome = _register(auth)
    auth.logout(outcome.token)
    assert auth.sessions.resolve(outcome.token) is None
    auth.logout(outcome.token)
    auth.logout(None)


def test_each_login_is_a_separate_session(auth):
    _register(auth)
    a = auth.login("alice", STRONG_PASSWORD)
    b = auth.login("alice", STRONG_PASSWORD)
    assert a.token != b.token
    auth.logout(a.token)
    assert auth.sessions.resolve(b.token) is not None


def test_storage_fault_propagates(auth, db):
    with db.begin() as conn:
        conn.execute(text("DROP TABLE user_profiles"))
        conn.execute(text("DROP TABLE users"))
    with pytest.raises(StorageFault):
        auth.login("alice", STRONG_PASSWORD)
