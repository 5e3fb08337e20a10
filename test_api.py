"""Tests for api.py routes."""

import inspect
from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

import api
import config
import persistence
import santa
from conftest import SlowBackend
from errors import GenerationError

CLIENT_HEADERS = {"x-forwarded-for": "203.0.113.7"}


@pytest.fixture
def client(store, attempts):
    api.app.dependency_overrides[api.get_store] = lambda: store
    api.app.dependency_overrides[api.get_failed_attempts] = lambda: attempts
    with TestClient(api.app) as c:
        yield c
    api.app.dependency_overrides.clear()


def _login(client, credential="alicepw1"):
    response = client.post("/verify-credential", json={"credential": credential}, headers=CLIENT_HEADERS)
    assert response.status_code == 200
    return response


# --------------------------
# /verify-credential
# --------------------------

def test_verify_returns_assignment_and_sets_session(client):
    response = _login(client)
    body = response.json()
    assert body["success"] is True
    assert body["assignedGiftee"] == "Bob"
    assert body["personName"] == "Alice"

    cookie = response.headers["set-cookie"]
    assert cookie.startswith("secretSantaUser=Alice;")
    assert "HttpOnly" in cookie
    assert "Max-Age=604800" in cookie
    assert "Path=/" in cookie
    assert "samesite=lax" in cookie.lower()


def test_verify_password_alias(client):
    response = client.post("/verify-password", json={"password": "carolpw3"})
    assert response.status_code == 200
    assert response.json()["assignedSanta"] == "Mary Jane"


def test_verify_missing_credential(client):
    response = client.post("/verify-credential", json={})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_five_wrong_credentials(client):
    responses = [
        client.post("/verify-credential", json={"credential": "guess"}, headers=CLIENT_HEADERS)
        for _ in range(5)
    ]
    assert [r.status_code for r in responses] == [401] * 5
    assert [r.json()["attempts"] for r in responses] == [1, 2, 3, 4, 5]
    assert "reach out" not in responses[3].json()["message"]
    assert "reach out" in responses[4].json()["message"]
    assert "set-cookie" not in responses[4].headers


def test_valid_credential_resets_attempts(client, attempts):
    client.post("/verify-credential", json={"credential": "guess"}, headers=CLIENT_HEADERS)
    _login(client)
    assert attempts.count("203.0.113.7") == 0


def test_clients_without_proxy_headers_share_a_counter(client, attempts):
    client.post("/verify-credential", json={"credential": "guess"})
    client.post("/verify-credential", json={"credential": "guess"})
    assert attempts.count("unknown") == 2


def test_verify_inconsistent_store(client, store):
    store.replace_all({"ghostpw1": "Ghost"}, {"A": ("B", []), "B": ("A", [])})
    response = client.post("/verify-credential", json={"credential": "ghostpw1"})
    assert response.status_code == 500
    assert response.json()["message"] == "No secret santa assigned"


# --------------------------
# Wish lists
# --------------------------

def test_wishlist_routes_need_a_session(client):
    assert client.post("/get-wishlist").status_code == 401
    assert client.post("/submit-wishlist", json={"wishList": ["Socks"]}).status_code == 401
    assert client.post("/get-wishlist-by-name", json={"personName": "Bob"}).status_code == 401


def test_submit_then_get(client, store):
    _login(client)
    response = client.post("/submit-wishlist", json={"wishList": ["Socks", "Socks"]})
    assert response.json() == {"success": True}
    client.post("/submit-wishlist", json={"wishList": ["Gloves"]})

    response = client.post("/get-wishlist")
    assert response.json() == {"success": True, "wishList": ["Gloves"]}
    assert store.get_wish_list("Alice") == ["Gloves"]


def test_submit_too_many_wishes(client):
    _login(client)
    response = client.post("/submit-wishlist", json={"wishList": ["a", "b", "c", "d", "e", "f"]})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_submit_missing_wish_list(client):
    _login(client)
    assert client.post("/submit-wishlist", json={}).status_code == 400


def test_any_session_may_read_any_wish_list(client, store):
    store.set_wish_list("Mary Jane", ["Scarf"])
    _login(client, "bobpw222")
    response = client.post("/get-wishlist-by-name", json={"personName": "Mary Jane"})
    assert response.json() == {"success": True, "wishList": ["Scarf"]}


def test_get_wishlist_by_name_requires_name(client):
    _login(client)
    assert client.post("/get-wishlist-by-name", json={}).status_code == 400


def test_session_cookie_with_encoded_name(client, store):
    _login(client, "marypw44")
    client.post("/submit-wishlist", json={"wishList": ["Mittens"]})
    assert store.get_wish_list("Mary Jane") == ["Mittens"]


# --------------------------
# /init and /clearall
# --------------------------

def test_init_regenerates_and_returns_credentials(client, store):
    response = client.post("/init", json={"participants": ["Ann", "Ann", " Ben ", ""]})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert sorted(entry["person"] for entry in body["credentials"]) == ["Ann", "Ben"]
    for entry in body["credentials"]:
        assert len(entry["credential"]) == 8
        assert store.lookup_person_by_credential(entry["credential"]) == entry["person"]
    assert store.lookup_giftee("Ann") == "Ben"
    assert store.lookup_person_by_credential("alicepw1") is None


def test_initialize_alias_answers_with_password_assignments(client, store):
    response = client.post("/initialize", json={"familyMembers": ["Ann", "Ben"]})
    assert response.status_code == 200
    body = response.json()
    assert "credentials" not in body
    assert sorted(entry["person"] for entry in body["passwordAssignments"]) == ["Ann", "Ben"]
    for entry in body["passwordAssignments"]:
        assert store.lookup_person_by_credential(entry["password"]) == entry["person"]


@pytest.mark.parametrize("participants", [[], ["Ann"], ["Ann", "Ann"], ["Ann", "  "]])
def test_init_needs_two_unique_names(client, participants):
    response = client.post("/init", json={"participants": participants})
    assert response.status_code == 400


def test_init_generation_failure_leaves_store_alone(client, store, monkeypatch):
    def fail(participants, rng=None):
        raise GenerationError("Unable to create valid Secret Santa assignments")

    monkeypatch.setattr(santa, "generate_assignments", fail)
    response = client.post("/init", json={"participants": ["Ann", "Ben", "Cat"]})
    assert response.status_code == 500
    assert response.json()["success"] is False
    assert store.lookup_giftee("Alice") == "Bob"


def test_clearall(client, store):
    response = client.post("/clearall")
    assert response.json()["success"] is True
    assert store.participants() == []


# --------------------------
# Startup
# --------------------------

def test_concurrent_first_access_builds_one_loaded_store(monkeypatch):
    backends = []

    def make_backend():
        backend = SlowBackend()
        backends.append(backend)
        return backend

    monkeypatch.setattr(api, "_store", None)
    monkeypatch.setattr(persistence, "backend_from_config", make_backend)
    monkeypatch.setattr(config, "DEFAULT_PARTICIPANTS", ["A", "B"])

    with ThreadPoolExecutor(max_workers=4) as pool:
        stores = list(pool.map(lambda _: api.get_store(), range(4)))

    assert len(backends) == 1
    assert all(s is stores[0] for s in stores)
    assert sorted(stores[0].participants()) == ["A", "B"]


def test_store_routes_run_in_the_threadpool():
    endpoints = {route.path: route.endpoint for route in api.app.routes if isinstance(route, APIRoute)}
    for path in ("/init", "/initialize", "/verify-credential", "/verify-password",
                 "/get-wishlist", "/get-wishlist-by-name", "/submit-wishlist", "/clearall"):
        assert not inspect.iscoroutinefunction(endpoints[path]), path
