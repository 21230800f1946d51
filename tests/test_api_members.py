"""Tests for the HTTP surface in kintree/main.py."""
import pytest
from sqlalchemy.exc import OperationalError

from kintree import crud
from tests.conftest import new_member


def _seed(db_session):
    crud.bulk_create_members(db_session, [
        new_member("Alice", born="1950-01-01"),
        new_member("Bob", born="1952-01-01"),
    ])


def _create_body(relative="Alice", **relative_tokens):
    return {
        "newFamilyMember": {"first_name": "Carol", "last_name": "Smith", "date_of_birth": "1951-06-01"},
        "relative": {"first_name": relative, "last_name": "Smith", **relative_tokens},
    }


class TestListMembers:
    def test_empty(self, client):
        resp = client.get("/family-members")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_list(self, client, db_session):
        _seed(db_session)
        resp = client.get("/family-members")
        assert resp.status_code == 200
        data = resp.json()
        assert [m["first_name"] for m in data] == ["Alice", "Bob"]
        assert data[0]["date_of_birth"] == "1950-01-01"
        assert data[0]["marriage_id"] is None

    def test_api_prefix(self, client, db_session):
        _seed(db_session)
        resp = client.get("/api/family-members")
        assert resp.status_code == 200
        assert len(resp.json()) == 2


class TestCreateMember:
    def test_created(self, client, db_session):
        _seed(db_session)
        body = _create_body(marriage_id=12)
        body["newFamilyMember"]["marriage_id"] = 12
        resp = client.post("/family-members", json=body)
        assert resp.status_code == 201
        data = resp.json()
        assert data["newFamilyMember"]["first_name"] == "Carol"
        assert data["newFamilyMember"]["marriage_id"] == 12
        assert data["newFamilyMember"]["id"] is not None
        assert data["relative"]["first_name"] == "Alice"
        assert data["relative"]["marriage_id"] == 12
        assert len(client.get("/family-members").json()) == 3

    def test_relative_not_found(self, client, db_session):
        _seed(db_session)
        resp = client.post("/family-members", json=_create_body(relative="Nobody", marriage_id=1))
        assert resp.status_code == 404
        assert "Nobody" in resp.json()["detail"]
        assert len(client.get("/family-members").json()) == 2

    @pytest.mark.parametrize("mutate", [
        lambda b: b.pop("relative"),
        lambda b: b["newFamilyMember"].pop("date_of_birth"),
        lambda b: b["newFamilyMember"].update(first_name="  "),
        lambda b: b["newFamilyMember"].update(date_of_death="1900-01-01"),
    ])
    def test_invalid_body(self, client, db_session, mutate):
        _seed(db_session)
        body = _create_body(marriage_id=1)
        mutate(body)
        resp = client.post("/family-members", json=body)
        assert resp.status_code == 422

    def test_persistence_failure(self, client, db_session, monkeypatch):
        _seed(db_session)

        def broken(*args, **kwargs):
            raise OperationalError("INSERT INTO family_members", {}, Exception("database is locked"))

        monkeypatch.setattr(crud, "create_member_with_relative", broken)
        resp = client.post("/family-members", json=_create_body(marriage_id=1))
        assert resp.status_code == 500
        assert "database is locked" in resp.json()["detail"]


class TestUnionTokens:
    def test_issue(self, client):
        first = client.post("/union-tokens")
        second = client.post("/union-tokens")
        assert first.status_code == 201
        assert second.json()["token"] > first.json()["token"]


class TestGraphEndpoints:
    def test_graph_payload(self, client, db_session):
        _seed(db_session)
        client.post("/family-members", json={
            **_create_body(marriage_id=5),
            "newFamilyMember": {"first_name": "Carol", "last_name": "Smith",
                                "date_of_birth": "1951-06-01", "marriage_id": 5},
        })
        data = client.get("/graph").json()
        kinds = [n["data"]["kind"] for n in data["nodes"]]
        assert kinds == ["person", "person", "person", "union"]
        assert {e["data"]["target"] for e in data["edges"]} == {0, 2}

    def test_figure(self, client, db_session):
        _seed(db_session)
        resp = client.get("/graph/figure")
        assert resp.status_code == 200
        fig = resp.json()
        assert "data" in fig
        assert "layout" in fig

    def test_figure_empty(self, client):
        fig = client.get("/graph/figure").json()
        assert fig["layout"]["title"]["text"] == "No family data found"

    @pytest.mark.parametrize("path", ["/family-members", "/graph", "/graph/figure", "/"])
    def test_read_failure_is_500(self, client, monkeypatch, path):
        def broken(db):
            raise OperationalError("SELECT family_members", {}, Exception("no such table: family_members"))

        monkeypatch.setattr(crud, "list_members", broken)
        resp = client.get(path)
        assert resp.status_code == 500
        assert "no such table" in resp.json()["detail"]

    def test_html_page(self, client, db_session):
        _seed(db_session)
        resp = client.get("/")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert "plotly" in resp.text.lower()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_cors_headers(client):
    resp = client.get("/family-members", headers={"Origin": "http://localhost:5173"})
    assert resp.headers["access-control-allow-origin"] == "*"
