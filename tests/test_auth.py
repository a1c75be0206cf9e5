# tests/test_auth.py
import pytest

pytestmark = pytest.mark.django_db


def test_login_sets_cookies_and_authenticates(anon_client, user):
    assert anon_client.get("/api/v1/me/").status_code == 401

    res = anon_client.post("/api/v1/auth/login/", {"username": "dispatcher", "password": "testpass"}, format="json")
    assert res.status_code == 200
    assert "fs_access" in res.cookies
    assert "fs_refresh" in res.cookies

    me = anon_client.get("/api/v1/me/")
    assert me.status_code == 200
    assert me.json()["username"] == "dispatcher"


def test_bad_credentials(anon_client, user):
    res = anon_client.post("/api/v1/auth/login/", {"username": "dispatcher", "password": "wrong"}, format="json")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "authentication_failed"


def test_legacy_prefix_serves_same_routes(api_client):
    assert api_client.get("/api/quotes/").status_code == 200
