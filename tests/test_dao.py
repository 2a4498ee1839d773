# tests/test_dao.py
import pytest
from sqlalchemy.exc import OperationalError

from clothesguard_service.dao import StoryDAO, UserDAO
from clothesguard_service.db import get_db
from clothesguard_service.exceptions import DuplicateKey, StorageFailure, ValidationError
from clothesguard_service.main import app


def _timeout(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("Lock wait timeout exceeded"))


@pytest.fixture
def rollbacks(db_session, monkeypatch):
    """Cuenta los rollback de la sesión sin dejar de ejecutarlos."""
    calls = []
    original = db_session.rollback

    def spy():
        calls.append(True)
        original()

    monkeypatch.setattr(db_session, "rollback", spy)
    return calls


def test_commit_failure_becomes_storage_failure(created_user, db_session, rollbacks, monkeypatch):
    dao = UserDAO(db_session)
    user = dao.get_one(created_user["user_id"])
    monkeypatch.setattr(db_session, "commit", _timeout)

    with pytest.raises(StorageFailure):
        dao.update_one(user.user_id, {"name": "no_se_guarda"})
    assert rollbacks == [True]


def test_query_failure_becomes_storage_failure(db_session, rollbacks, monkeypatch):
    monkeypatch.setattr(db_session, "query", _timeout)

    with pytest.raises(StorageFailure):
        StoryDAO(db_session).get_all()
    assert rollbacks == [True]


def test_not_null_violation_is_a_validation_error(created_user, db_session, rollbacks):
    dao = UserDAO(db_session)
    with pytest.raises(ValidationError):
        dao._update(dao.get_one(created_user["user_id"]), {"name": None})
    assert rollbacks == [True]
    assert dao.get_one(created_user["user_id"]).name == created_user["name"]


def test_unique_violation_is_still_a_duplicate_key(created_user, db_session, rollbacks):
    with pytest.raises(DuplicateKey):
        UserDAO(db_session).insert({
            "name": created_user["name"],
            "email": "otro@example.com",
            "password": "password123",
        })
    assert rollbacks == [True]


def test_storage_failure_over_http(client, db_session, rollbacks, monkeypatch):
    monkeypatch.setattr(db_session, "query", _timeout)

    def failing_db():
        yield db_session

    app.dependency_overrides[get_db] = failing_db
    try:
        r = client.get("/users")
    finally:
        app.dependency_overrides.pop(get_db, None)

    assert r.status_code == 500
    assert r.json() == {"detail": "Error al obtener users.", "code": "STORAGE_FAILURE"}
    assert rollbacks == [True]
