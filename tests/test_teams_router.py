"""
Tests for the /api/v1/teams endpoints.

Tests cover:
- Authentication (missing and invalid tokens)
- Search visibility for org admins, scoped users and plain members
- Create, read, update and delete with their authorization rules
- Error bodies for business-rule rejections
- The signed-in user's own teams
- Concurrent requests on one event loop
"""

import asyncio
import time

import httpx
import pytest

from conftest import ADMIN, LOCK_TIMEOUT, ORG_ID, auth_headers
from services.membership_store import add_team_member
from services.team_store import create_team
from teams.models.team_member import TeamMember
from teams.models.teams import Team
from teams.routers import teams_router

BASE_URL = "/api/v1/teams"


@pytest.fixture
def frontend(db):
    return create_team(db, ORG_ID, "Frontend", "frontend@example.com")


def org_admin(user_id=1000):
    return auth_headers(user_id, org_role="Admin")


# ========== Authentication ==========

class TestAuthentication:

    def test_missing_token(self, client):
        response = client.get(f"{BASE_URL}/search")

        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get(f"{BASE_URL}/search", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


# ========== Search ==========

class TestSearchTeams:

    def test_org_admin_sees_every_team(self, client, team, frontend):
        response = client.get(f"{BASE_URL}/search", headers=org_admin())

        assert response.status_code == 200
        body = response.json()
        assert [t["name"] for t in body["teams"]] == ["Backend", "Frontend"]
        assert body["total_count"] == 2
        assert body["page"] == 1
        assert body["per_page"] == 1000

    def test_member_sees_own_teams_with_permission(self, client, db, team, frontend, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)

        response = client.get(f"{BASE_URL}/search", headers=auth_headers(users["ana"].id, login="ana"))

        assert response.status_code == 200
        teams = response.json()["teams"]
        assert [(t["name"], t["permission"]) for t in teams] == [("Backend", 4)]

    def test_scoped_reader_sees_granted_teams(self, client, team, frontend, users):
        headers = auth_headers(users["ana"].id, permissions={"teams:read": [f"teams:id:{frontend.id}"]})

        response = client.get(f"{BASE_URL}/search", headers=headers)

        assert [t["name"] for t in response.json()["teams"]] == ["Frontend"]
        assert response.json()["total_count"] == 1

    def test_wildcard_reader_sees_every_team(self, client, team, frontend, users):
        headers = auth_headers(users["ana"].id, permissions={"teams:read": ["teams:*"]})

        response = client.get(f"{BASE_URL}/search", headers=headers)

        assert response.json()["total_count"] == 2

    def test_query_and_pagination(self, client, team, frontend):
        response = client.get(f"{BASE_URL}/search", params={"query": "end", "page": 2, "perpage": 1},
                              headers=org_admin())

        body = response.json()
        assert [t["name"] for t in body["teams"]] == ["Frontend"]
        assert body["total_count"] == 2

    def test_page_must_be_positive(self, client):
        response = client.get(f"{BASE_URL}/search", params={"page": 0}, headers=org_admin())

        assert response.status_code == 422

    def test_teams_of_other_orgs_are_hidden(self, client, team):
        response = client.get(f"{BASE_URL}/search", headers=auth_headers(1000, org_id=ORG_ID + 1, org_role="Admin"))

        assert response.json()["teams"] == []


# ========== Create ==========

class TestCreateTeam:

    def test_org_admin_creates_team(self, client, session_factory):
        response = client.post(f"{BASE_URL}/", json={"name": "Ops", "email": "ops@example.com"},
                               headers=org_admin())

        assert response.status_code == 201
        assert response.json()["message"] == "Team created"

        with session_factory() as session:
            team = session.get(Team, response.json()["team_id"])
            assert (team.org_id, team.name, team.email) == (ORG_ID, "Ops", "ops@example.com")

    def test_viewer_is_forbidden(self, client, users):
        response = client.post(f"{BASE_URL}/", json={"name": "Ops"}, headers=auth_headers(users["ana"].id))

        assert response.status_code == 403

    def test_create_scope_allows_viewer(self, client, users):
        headers = auth_headers(users["ana"].id, permissions={"teams:create": ["teams:*"]})

        response = client.post(f"{BASE_URL}/", json={"name": "Ops"}, headers=headers)

        assert response.status_code == 201

    def test_editors_can_admin_setting(self, client, users, monkeypatch):
        headers = auth_headers(users["ana"].id, org_role="Editor")

        assert client.post(f"{BASE_URL}/", json={"name": "Ops"}, headers=headers).status_code == 403

        monkeypatch.setattr(teams_router, "EDITORS_CAN_ADMIN", True)

        assert client.post(f"{BASE_URL}/", json={"name": "Ops"}, headers=headers).status_code == 201

    def test_duplicate_name(self, client, team):
        response = client.post(f"{BASE_URL}/", json={"name": "Backend"}, headers=org_admin())

        assert response.status_code == 409
        assert response.json() == {"message": "Team name taken", "kind": "team_name_taken"}

    def test_blank_name_is_rejected(self, client):
        response = client.post(f"{BASE_URL}/", json={"name": "   "}, headers=org_admin())

        assert response.status_code == 422


# ========== Get ==========

class TestGetTeam:

    def test_org_admin(self, client, team):
        response = client.get(f"{BASE_URL}/{team.id}", headers=org_admin())

        assert response.status_code == 200
        assert response.json()["name"] == "Backend"
        assert response.json()["member_count"] == 0

    def test_member(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id)

        response = client.get(f"{BASE_URL}/{team.id}", headers=auth_headers(users["ana"].id))

        assert response.status_code == 200
        assert response.json()["member_count"] == 1

    def test_non_member_gets_not_found(self, client, team, users):
        response = client.get(f"{BASE_URL}/{team.id}", headers=auth_headers(users["ana"].id))

        assert response.status_code == 404
        assert response.json()["kind"] == "team_not_found"

    def test_other_org(self, client, team):
        response = client.get(f"{BASE_URL}/{team.id}", headers=auth_headers(1000, org_id=ORG_ID + 1,
                                                                          org_role="Admin"))

        assert response.status_code == 404


# ========== Update ==========

class TestUpdateTeam:

    def test_team_admin_updates(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)

        response = client.put(f"{BASE_URL}/{team.id}", json={"name": "Platform", "email": "platform@example.com"},
                              headers=auth_headers(users["ana"].id))

        assert response.status_code == 200
        assert response.json()["name"] == "Platform"
        assert response.json()["email"] == "platform@example.com"

    def test_plain_member_is_forbidden(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id)

        response = client.put(f"{BASE_URL}/{team.id}", json={"name": "Platform"},
                              headers=auth_headers(users["ana"].id))

        assert response.status_code == 403

    def test_taken_name(self, client, team, frontend):
        response = client.put(f"{BASE_URL}/{frontend.id}", json={"name": "Backend"}, headers=org_admin())

        assert response.status_code == 409

    def test_missing_team(self, client):
        response = client.put(f"{BASE_URL}/999", json={"name": "Ghost"}, headers=org_admin())

        assert response.status_code == 404


# ========== Delete ==========

class TestDeleteTeam:

    def test_org_admin_deletes_team_and_members(self, client, db, team, users, session_factory):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)

        response = client.delete(f"{BASE_URL}/{team.id}", headers=org_admin())

        assert response.status_code == 200
        assert response.json() == {"message": "Team deleted", "team_id": team.id}

        with session_factory() as session:
            assert session.query(Team).count() == 0
            assert session.query(TeamMember).count() == 0

    def test_team_admin_may_delete(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)

        response = client.delete(f"{BASE_URL}/{team.id}", headers=auth_headers(users["ana"].id))

        assert response.status_code == 200

    def test_plain_member_is_forbidden(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id)

        response = client.delete(f"{BASE_URL}/{team.id}", headers=auth_headers(users["ana"].id))

        assert response.status_code == 403

    def test_delete_scope_on_the_team(self, client, team, users):
        headers = auth_headers(users["ana"].id, permissions={"teams:delete": [f"teams:id:{team.id}"]})

        assert client.delete(f"{BASE_URL}/{team.id}", headers=headers).status_code == 200

    def test_missing_team(self, client):
        response = client.delete(f"{BASE_URL}/999", headers=org_admin())

        assert response.status_code == 404


# ========== Own teams ==========

class TestMyTeams:

    def test_lists_own_teams_with_permission(self, client, db, team, frontend, users):
        add_team_member(db, ORG_ID, team.id, users["ana"].id, permission=ADMIN)
        add_team_member(db, ORG_ID, frontend.id, users["ana"].id)

        response = client.get(f"{BASE_URL}/mine", headers=auth_headers(users["ana"].id))

        assert response.status_code == 200
        body = response.json()
        assert [(t["name"], t["permission"]) for t in body["teams"]] == [("Backend", 4), ("Frontend", 0)]
        assert body["is_admin_of_teams"] is True

    def test_plain_member(self, client, db, team, users):
        add_team_member(db, ORG_ID, team.id, users["bruno"].id)

        body = client.get(f"{BASE_URL}/mine", headers=auth_headers(users["bruno"].id)).json()

        assert [t["name"] for t in body["teams"]] == ["Backend"]
        assert body["is_admin_of_teams"] is False

    def test_no_teams(self, client, team, users):
        body = client.get(f"{BASE_URL}/mine", headers=auth_headers(users["carla"].id)).json()

        assert body == {"teams": [], "is_admin_of_teams": False}


# ========== Concurrency ==========

class TestConcurrentRequests:

    def test_parallel_reads_and_writes_on_one_event_loop(self, client, team):
        from main import app

        async def send_all():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                searches = [http.get(f"{BASE_URL}/search", headers=org_admin()) for _ in range(5)]
                creates = [
                    http.post(f"{BASE_URL}/", json={"name": f"Team {i}"}, headers=org_admin())
                    for i in range(3)
                ]
                return await asyncio.gather(*searches, *creates)

        started = time.monotonic()
        responses = asyncio.run(send_all())
        elapsed = time.monotonic() - started

        assert [r.status_code for r in responses] == [200] * 5 + [201] * 3
        assert elapsed < LOCK_TIMEOUT
