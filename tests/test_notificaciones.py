# tests/test_notificaciones.py
import pytest


@pytest.fixture
def notificacion(client, auth_headers, created_user):
    r = client.post(
        "/notificaciones",
        json={"descripcion": "Humedad alta en el armario", "tipo": "alerta", "usuarioId": created_user["user_id"]},
        headers=auth_headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_defaults(notificacion):
    assert notificacion["leida"] is False
    assert notificacion["prioridad"] == "media"
    assert notificacion["fechaHora"]


def test_invalid_priority(client, auth_headers):
    r = client.post(
        "/notificaciones",
        json={"descripcion": "x", "tipo": "alerta", "prioridad": "urgente"},
        headers=auth_headers,
    )
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_description_is_required(client, auth_headers):
    r = client.post("/notificaciones", json={"tipo": "alerta"}, headers=auth_headers)
    assert r.status_code == 400


def test_get_and_list(client, notificacion, created_user):
    r = client.get(f"/notificaciones/{notificacion['id']}")
    assert r.status_code == 200
    assert r.json()["descripcion"] == "Humedad alta en el armario"

    assert len(client.get("/notificaciones").json()) == 1
    by_user = client.get(f"/notificaciones/user/{created_user['user_id']}").json()
    assert [n["id"] for n in by_user] == [notificacion["id"]]
    assert client.get("/notificaciones/user/otro").json() == []
    assert client.get("/notificaciones/9999").status_code == 404


def test_mark_as_read_is_idempotent(client, notificacion, auth_headers):
    url = f"/notificaciones/{notificacion['id']}/read"
    first = client.patch(url, headers=auth_headers)
    second = client.patch(url, headers=auth_headers)
    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json()["leida"] is True
    assert second.json()["leida"] is True

    assert client.patch("/notificaciones/9999/read", headers=auth_headers).status_code == 404


def test_delete_one(client, notificacion, auth_headers):
    r = client.delete(f"/notificaciones/{notificacion['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert client.get(f"/notificaciones/{notificacion['id']}").status_code == 404


def test_deleting_user_keeps_notifications_until_explicit_bulk_delete(client, created_user, auth_headers):
    user_id = created_user["user_id"]
    for descripcion in ("uno", "dos"):
        client.post(
            "/notificaciones",
            json={"descripcion": descripcion, "tipo": "informativa", "usuarioId": user_id, "prioridad": "alta"},
            headers=auth_headers,
        )

    assert client.delete(f"/users/{user_id}", headers=auth_headers).status_code == 200
    assert len(client.get(f"/notificaciones/user/{user_id}").json()) == 2

    # El token sigue siendo válido aunque el usuario ya no exista
    r = client.delete(f"/notificaciones/user/{user_id}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"deletedCount": 2}
    assert client.get(f"/notificaciones/user/{user_id}").json() == []

    r = client.delete(f"/notificaciones/user/{user_id}", headers=auth_headers)
    assert r.json() == {"deletedCount": 0}
