import sqlite3

import pytest

from services.mercado_service import app as mercado_app
from services.mercado_service import create_app
from services.mercado_service.app import SEED_MERCADO, validate_mercado


def create(client, **fields):
    payload = {"nome": "Moni", "cnpj": "12345678912123", "endereco": "Rua 1"}
    payload.update(fields)
    return client.post("/mercado", json=payload)


def test_create_returns_assigned_id_and_echo(client):
    response = create(client)

    assert response.status_code == 201
    body = response.get_json()
    assert isinstance(body["id"], int) and body["id"] > 0
    assert body["nome"] == "Moni"
    assert body["cnpj"] == "12345678912123"
    assert body["endereco"] == "Rua 1"


def test_create_duplicate_cnpj_conflicts(client):
    create(client)
    response = create(client, nome="Mercado Teste", endereco="Rua Teste")

    assert response.status_code == 409
    assert "CNPJ" in response.get_json()["message"]


@pytest.mark.parametrize("payload", [
    {"nome": "", "cnpj": "123", "endereco": ""},
    {"nome": "Moni", "cnpj": "1234567891212a", "endereco": "Rua 1"},
    {"nome": "Moni", "endereco": "Rua 1"},
    {"nome": "Moni", "cnpj": "12345678912123", "endereco": "Rua 1", "produtos": []},
])
def test_create_invalid_payload(client, payload):
    response = client.post("/mercado", json=payload)

    assert response.status_code == 400
    assert isinstance(response.get_json()["message"], str)


def test_create_rejects_non_json_body(client):
    response = client.post("/mercado", data="nome=Moni", content_type="text/plain")
    assert response.status_code == 400


def test_list_starts_with_seeded_catalog(client):
    response = client.get("/mercado")

    assert response.status_code == 200
    assert response.content_type.startswith("application/json")
    first = response.get_json()[0]
    assert first["cnpj"] == SEED_MERCADO["cnpj"]
    assert first["produtos"]["peixaria"][0]["peixes"][0]["preco"] == 40


def test_retrieve_record_shape(client):
    mercado_id = create(client).get_json()["id"]
    response = client.get(f"/mercado/{mercado_id}")

    assert response.status_code == 200
    assert response.get_json() == {
        "id": mercado_id,
        "nome": "Moni",
        "cnpj": "12345678912123",
        "endereco": "Rua 1",
        "produtos": {},
    }


def test_retrieve_unknown_id(client):
    response = client.get("/mercado/999999")

    assert response.status_code == 404
    assert "not found" in response.get_json()["message"]


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_id_beyond_integer_range_is_not_found(client, method):
    response = getattr(client, method)("/mercado/99999999999999999999", json={"nome": "X"})

    assert response.status_code == 404
    assert response.is_json
    assert "not found" in response.get_json()["message"]


def test_unhandled_error_answers_json(client, monkeypatch):
    def broken(database):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(mercado_app, "connect", broken)
    response = client.get("/mercado")

    assert response.status_code == 500
    assert response.get_json() == {"message": "Internal server error"}


@pytest.mark.parametrize("segment", ["invalidId", "-5", "12abc"])
def test_malformed_id_is_bad_request(client, segment):
    assert client.get(f"/mercado/{segment}").status_code == 400
    assert client.delete(f"/mercado/{segment}").status_code == 400
    assert client.put(f"/mercado/{segment}", json={"nome": "X"}).status_code == 400


def test_unknown_route_is_not_found(client):
    response = client.get("/mercado/naoexiste")

    assert response.status_code == 404
    assert "not found" in response.get_json()["message"]


def test_nested_unknown_route_is_not_found(client):
    assert client.get("/mercado/1/naoexiste").status_code == 404


@pytest.mark.parametrize("method", ["delete", "put", "patch"])
def test_collection_rejects_method(client, method):
    response = getattr(client, method)("/mercado")

    assert response.status_code == 405
    assert response.is_json


def test_update_returns_confirmation_and_record(client):
    mercado_id = create(client).get_json()["id"]
    dados = {"nome": "Novo Nome", "cnpj": "99999999999999", "endereco": "Rua 2"}
    response = client.put(f"/mercado/{mercado_id}", json=dados)

    assert response.status_code == 200
    assert response.get_json() == {
        "message": f"Mercado com ID {mercado_id} atualizado com sucesso.",
        "updatedMercado": {"id": mercado_id, **dados},
    }
    assert client.get(f"/mercado/{mercado_id}").get_json()["nome"] == "Novo Nome"


def test_partial_update_changes_only_submitted_fields(client):
    mercado_id = create(client).get_json()["id"]
    client.put(f"/mercado/{mercado_id}", json={"endereco": "Rua 3"})

    mercado = client.get(f"/mercado/{mercado_id}").get_json()
    assert mercado["endereco"] == "Rua 3"
    assert mercado["nome"] == "Moni"
    assert mercado["cnpj"] == "12345678912123"
    assert mercado["id"] == mercado_id


def test_update_persists_produtos(client):
    mercado_id = create(client).get_json()["id"]
    response = client.put(f"/mercado/{mercado_id}", json={"produtos": {"padaria": []}})

    assert response.status_code == 200
    assert "produtos" not in response.get_json()["updatedMercado"]
    mercado = client.get(f"/mercado/{mercado_id}").get_json()
    assert mercado["produtos"] == {"padaria": []}
    assert mercado["nome"] == "Moni"


def test_update_rejects_non_object_produtos(client):
    mercado_id = create(client).get_json()["id"]

    response = client.put(f"/mercado/{mercado_id}", json={"produtos": []})

    assert response.status_code == 400
    assert "produtos" in response.get_json()["message"]
    assert client.get(f"/mercado/{mercado_id}").get_json()["produtos"] == {}


def test_update_to_existing_cnpj_conflicts(client):
    mercado_id = create(client).get_json()["id"]
    response = client.put(f"/mercado/{mercado_id}", json={"cnpj": SEED_MERCADO["cnpj"]})
    assert response.status_code == 409


def test_update_unknown_and_invalid(client):
    mercado_id = create(client).get_json()["id"]

    assert client.put("/mercado/999999", json={"nome": "X"}).status_code == 404
    assert client.put(f"/mercado/{mercado_id}", json={}).status_code == 400
    assert client.put(f"/mercado/{mercado_id}", json={"nome": "", "cnpj": "123"}).status_code == 400


def test_delete_twice_then_lookup(client):
    mercado_id = create(client).get_json()["id"]

    first = client.delete(f"/mercado/{mercado_id}")
    assert first.status_code == 200
    assert first.get_json() == {"message": f"Mercado com ID {mercado_id} foi removido com sucesso."}
    assert client.delete(f"/mercado/{mercado_id}").status_code == 404
    assert client.get(f"/mercado/{mercado_id}").status_code == 404


def test_ids_are_not_reused_after_delete(client):
    first_id = create(client).get_json()["id"]
    client.delete(f"/mercado/{first_id}")

    second_id = create(client).get_json()["id"]
    assert second_id > first_id


@pytest.mark.parametrize("mode, status", [("down", 503), ("error", 500)])
def test_failure_modes(client, mode, status):
    assert client.post("/set_failure_mode", json={"mode": mode}).status_code == 200

    assert client.get("/mercado").status_code == status
    assert client.get("/health").status_code == 503
    assert client.get("/health").get_json() == {"service": "mercado_service", "mode": mode, "status": 503}
    assert client.get("/get_failure_mode").get_json() == {"mode": mode}

    client.post("/set_failure_mode", json={"mode": "normal"})
    assert client.get("/mercado").status_code == 200


def test_slow_mode_still_answers(tmp_path):
    app = create_app(DATABASE=str(tmp_path / "slow.sqlite"), SLOW_SECONDS=0.01)
    client = app.test_client()
    client.post("/set_failure_mode", json={"mode": "slow"})

    assert client.get("/mercado").status_code == 200
    assert client.get("/health").status_code == 504


def test_invalid_failure_mode(client):
    response = client.post("/set_failure_mode", json={"mode": "broken"})
    assert response.status_code == 400


def test_rate_limit_answers_429(tmp_path):
    app = create_app(DATABASE=str(tmp_path / "limited.sqlite"), RATE_LIMIT="3/minute")
    client = app.test_client()

    statuses = [client.get("/mercado").status_code for _ in range(5)]

    assert statuses == [200, 200, 200, 429, 429]
    limited = client.get("/mercado")
    assert 0 < int(limited.headers["Retry-After"]) <= 60
    # Las rutas administrativas no consumen el límite
    assert client.get("/health").status_code == 200


def test_validate_mercado_partial():
    assert validate_mercado({"nome": "X"}, partial=True) == []
    assert validate_mercado({"nome": "X"}) != []
    assert validate_mercado(["nome"]) == ["O corpo da requisição deve ser um objeto JSON"]
