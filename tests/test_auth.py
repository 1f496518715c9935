import pytest

from rental_admin.auth import SessionContext
from rental_admin.errors import AuthError, ValidationError


@pytest.fixture
def session(client):
    client.auth.add_account("admin@fleet.io", "s3cret", "user-admin")
    client.auth.add_account("clerk@fleet.io", "pa55", "user-clerk")
    client.tables["profiles"] = [
        {"id": "user-admin", "first_name": "Alex", "last_name": "Admin", "is_admin": True, "_seq": 1},
        {"id": "user-clerk", "first_name": "Casey", "last_name": "Clerk", "is_admin": False, "_seq": 2},
    ]
    ctx = SessionContext(client).start()
    yield ctx
    ctx.close()


def test_starts_anonymous(session):
    assert session.is_authenticated is False
    assert session.is_admin() is False
    with pytest.raises(AuthError):
        session.require_authenticated()


def test_login_loads_profile_through_the_auth_event(session):
    session.login("admin@fleet.io", "s3cret")
    assert session.user.id == "user-admin"
    assert session.profile.full_name == "Alex Admin"
    assert session.is_admin() is True
    session.require_admin()


def test_regular_user_is_not_admin(session):
    session.login("clerk@fleet.io", "pa55")
    assert session.is_authenticated
    assert session.is_admin() is False
    with pytest.raises(AuthError):
        session.require_admin()


def test_bad_credentials(session):
    with pytest.raises(AuthError):
        session.login("admin@fleet.io", "wrong")
    assert session.user is None


def test_blank_credentials(session):
    with pytest.raises(ValidationError):
        session.login("", "")


def test_sign_out_clears_state_and_notifies(session):
    seen = []
    session.add_listener(lambda ctx: seen.append(ctx.is_authenticated))
    session.login("admin@fleet.io", "s3cret")
    session.logout()
    assert session.user is None
    assert session.profile is None
    assert seen == [True, False]


def test_removed_listener_is_not_called(session):
    seen = []
    remove = session.add_listener(seen.append)
    remove()
    session.login("clerk@fleet.io", "pa55")
    assert seen == []


def test_start_picks_up_an_existing_session(client, session):
    session.login("clerk@fleet.io", "pa55")
    other = SessionContext(client).start()
    assert other.user.id == "user-clerk"
    other.close()


def test_start_subscribes_once_and_close_unsubscribes(client, session):
    session.start()
    assert len(client.auth.callbacks) == 1
    session.close()
    assert client.auth.callbacks == []
    client.auth.sign_in_with_password({"email": "admin@fleet.io", "password": "s3cret"})
    assert session.user is None


def test_missing_profile_leaves_user_signed_in(client, session):
    client.fail("profiles", "select")
    session.login("admin@fleet.io", "s3cret")
    assert session.is_authenticated
    assert session.profile is None
    assert session.is_admin() is False
