# tests/conftest.py
import os
import shutil
import tempfile
import uuid

import pytest

# La configuración se fija ANTES de importar la aplicación: se lee una sola vez al arrancar
_TMP_DIR = tempfile.mkdtemp(prefix="clothesguard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["JWT_SECRET_KEY"] = "clave-solo-para-pruebas"

from fastapi.testclient import TestClient  # noqa: E402

from clothesguard_service.db import Base, SessionLocal, engine  # noqa: E402
from clothesguard_service.main import app  # noqa: E402

UPLOAD_DIR = os.environ["UPLOAD_DIR"]
TEST_PASSWORD = "password123"


@pytest.fixture(autouse=True)
def clean_state():
    """Esquema vacío y carpeta de subidas vacía para cada prueba."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    for name in os.listdir(UPLOAD_DIR):
        os.remove(os.path.join(UPLOAD_DIR, name))
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_payload():
    suffix = uuid.uuid4().hex[:8]
    return {
        "name": f"usuario_{suffix}",
        "email": f"usuario_{suffix}@example.com",
        "password": TEST_PASSWORD,
        "address": {"state": "Jalisco", "municipality": "Zapopan"},
    }


@pytest.fixture
def created_user(client, user_payload):
    """Registra un usuario y devuelve su respuesta junto con la contraseña en claro."""
    r = client.post("/users", json=user_payload)
    assert r.status_code == 201, r.text
    return {**r.json(), "password": user_payload["password"]}


@pytest.fixture
def auth_headers(client, created_user):
    r = client.post("/users/login", json={"name": created_user["name"], "password": created_user["password"]})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP_DIR, ignore_errors=True)
