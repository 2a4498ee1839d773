# tests/test_sensores.py
from datetime import datetime, timezone

import pytest

from clothesguard_service.dao import SensorDAO
from clothesguard_service.exceptions import InvalidDate


def test_reading_without_timestamp_defaults_to_now(client):
    before = datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
    r = client.post("/sensores", json={"tipo": "sensor", "nombre": "humedad", "valor": 63.5, "unidad": "%"})
    assert r.status_code == 201
    body = r.json()
    assert body["valor"] == 63.5
    assert body["accion"] == ""
    assert datetime.fromisoformat(body["fechaHora"]) >= before


def test_actuator_command_with_symbolic_value(client):
    r = client.post("/sensores", json={
        "tipo": "actuador",
        "nombre": "ventilador",
        "valor": "ON",
        "accion": "encender",
        "fechaHora": "2024-05-01T08:30:00Z",
    })
    assert r.status_code == 201
    body = r.json()
    assert body["valor"] == "ON"
    assert body["accion"] == "encender"
    assert body["fechaHora"].startswith("2024-05-01T08:30:00")


def test_invalid_timestamp_is_rejected(client):
    r = client.post("/sensores", json={"tipo": "sensor", "nombre": "t", "valor": 1, "fechaHora": "no-es-fecha"})
    assert r.status_code == 400
    assert r.json()["code"] == "INVALID_DATE"
    assert client.get("/sensores").json() == []


def test_invalid_timestamp_in_dao(db_session):
    with pytest.raises(InvalidDate):
        SensorDAO(db_session).insert({"tipo": "sensor", "nombre": "t", "valor": 1, "fecha_hora": "31/02/2024"})


def test_timestamp_with_offset_is_normalized_to_utc(client):
    r = client.post("/sensores", json={
        "tipo": "sensor", "nombre": "t", "valor": 1, "fechaHora": "2024-05-01T12:00:00+02:00",
    })
    assert r.json()["fechaHora"].startswith("2024-05-01T10:00:00")


def test_readings_are_listed_newest_first(client):
    for nombre, fecha in [
        ("t2", "2024-01-02T00:00:00Z"),
        ("t1", "2024-01-01T00:00:00Z"),
        ("t3", "2024-01-03T00:00:00Z"),
    ]:
        assert client.post("/sensores", json={"tipo": "sensor", "nombre": nombre, "valor": 0, "fechaHora": fecha}).status_code == 201

    r = client.get("/sensores")
    assert r.status_code == 200
    assert [s["nombre"] for s in r.json()] == ["t3", "t2", "t1"]


def test_missing_name_is_a_validation_error(client):
    r = client.post("/sensores", json={"tipo": "sensor", "valor": 1})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"
