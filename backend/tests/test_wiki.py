# tests/test_wiki.py — Wiki router tests
import pytest
from httpx import AsyncClient

from tests.conftest import get_auth_headers


async def _create_simple(client, user, project_id, title, **fields):
    resp = await client.post(
        "/api/v1/wiki/pages/simple",
        json={"title": title, "project_id": project_id, **fields},
        headers=get_auth_headers(user),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.mark.asyncio
class TestCreate:
    async def test_create_with_slug(self, client: AsyncClient, website, bob):
        resp = await client.post(
            "/api/v1/wiki/pages",
            json={"title": "Onboarding", "content": "# Hello", "slug": "onboarding", "project_id": website.id},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["slug"] == "onboarding"
        assert data["published"] is False
        assert data["created_by"]["id"] == bob.id
        assert data["last_edited_by"] is None
        assert data["project_name"] == "Website"

    async def test_slug_collision(self, client: AsyncClient, website, bob):
        body = {"title": "A", "content": "", "slug": "same", "project_id": website.id}
        await client.post("/api/v1/wiki/pages", json=body, headers=get_auth_headers(bob))
        resp = await client.post("/api/v1/wiki/pages", json=body, headers=get_auth_headers(bob))
        assert resp.status_code == 409
        assert resp.json()["detail"] == "A wiki page with this slug already exists in this project"

    async def test_bad_slug(self, client: AsyncClient, website, bob):
        resp = await client.post(
            "/api/v1/wiki/pages",
            json={"title": "A", "content": "", "slug": "Not A Slug", "project_id": website.id},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 422

    async def test_create_simple_suffixes_slug(self, client: AsyncClient, website, bob):
        first = await _create_simple(client, bob, website.id, "Setup Guide")
        second = await _create_simple(client, bob, website.id, "Setup Guide")
        third = await _create_simple(client, bob, website.id, "Setup Guide!")
        assert first["slug"] == "setup-guide"
        assert second["slug"] == "setup-guide-1"
        assert third["slug"] == "setup-guide-2"
        assert first["published"] is True

    async def test_create_simple_symbols_only(self, client: AsyncClient, website, bob):
        page = await _create_simple(client, bob, website.id, "!!!")
        assert page["slug"] == "page"

    async def test_new_page_has_no_editor(self, client: AsyncClient, website, bob):
        page = await _create_simple(client, bob, website.id, "Fresh")
        assert page["created_by"]["id"] == bob.id
        assert page["last_edited_by_id"] is None
        assert page["last_edited_by"] is None

    async def test_lost_slug_race_is_conflict(self, client: AsyncClient, website, bob, monkeypatch):
        """Two writers passing the slug lookup together: the second commit answers 409"""
        await _create_simple(client, bob, website.id, "Setup Guide")

        async def _free_slug(db, project_id, title):
            return "setup-guide"

        async def _never_taken(db, project_id, slug):
            return False

        monkeypatch.setattr("routers.wiki.unique_wiki_slug", _free_slug)
        monkeypatch.setattr("routers.wiki.slug_taken", _never_taken)

        resp = await client.post(
            "/api/v1/wiki/pages/simple",
            json={"title": "Setup Guide", "project_id": website.id},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 409
        assert resp.json()["detail"] == "A wiki page with this slug already exists in this project"

        resp = await client.post(
            "/api/v1/wiki/pages",
            json={"title": "Again", "content": "", "slug": "setup-guide", "project_id": website.id},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 409

        other = await client.post(
            "/api/v1/wiki/pages",
            json={"title": "Other", "content": "", "slug": "other", "project_id": website.id, "published": True},
            headers=get_auth_headers(bob),
        )
        resp = await client.patch(
            f"/api/v1/wiki/pages/{other.json()['id']}",
            json={"slug": "setup-guide"},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 409

        resp = await client.get(f"/api/v1/wiki/projects/{website.id}/pages", headers=get_auth_headers(bob))
        assert sorted(p["slug"] for p in resp.json()) == ["other", "setup-guide"]

    async def test_non_member(self, client: AsyncClient, website, carol):
        resp = await client.post(
            "/api/v1/wiki/pages/simple",
            json={"title": "Intrusion", "project_id": website.id},
            headers=get_auth_headers(carol),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You don't have access to this project"


@pytest.mark.asyncio
class TestRead:
    async def test_get_all_published(self, client: AsyncClient, website, bob):
        await _create_simple(client, bob, website.id, "Visible")
        await _create_simple(client, bob, website.id, "Hidden", published=False)

        resp = await client.get("/api/v1/wiki", headers=get_auth_headers(bob))
        assert resp.status_code == 200
        assert [p["title"] for p in resp.json()] == ["Visible"]

        resp = await client.get(f"/api/v1/wiki/projects/{website.id}/pages", headers=get_auth_headers(bob))
        assert [p["title"] for p in resp.json()] == ["Visible"]

    async def test_get_all_without_organization(self, client: AsyncClient, acme, carol):
        resp = await client.get("/api/v1/wiki", headers=get_auth_headers(carol))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You don't have access to any organization"

    async def test_get_by_id_and_slug(self, client: AsyncClient, website, alice, bob, carol):
        page = await _create_simple(client, bob, website.id, "Deploy Notes")

        resp = await client.get(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(alice))
        assert resp.status_code == 200
        assert resp.json()["title"] == "Deploy Notes"

        resp = await client.get(
            f"/api/v1/wiki/projects/{website.id}/pages/by-slug/deploy-notes", headers=get_auth_headers(alice),
        )
        assert resp.status_code == 200
        assert resp.json()["id"] == page["id"]

        resp = await client.get(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(carol))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You don't have access to this wiki page"

    async def test_unknown_slug(self, client: AsyncClient, website, bob):
        resp = await client.get(
            f"/api/v1/wiki/projects/{website.id}/pages/by-slug/nope", headers=get_auth_headers(bob),
        )
        assert resp.status_code == 404

    async def test_search(self, client: AsyncClient, website, bob):
        await _create_simple(client, bob, website.id, "Release Process", content="Tag then deploy")
        await _create_simple(client, bob, website.id, "Holidays", content="Office closed")
        await _create_simple(client, bob, website.id, "Deploy Draft", published=False)

        resp = await client.get(
            f"/api/v1/wiki/projects/{website.id}/search", params={"q": "DEPLOY"}, headers=get_auth_headers(bob),
        )
        assert resp.status_code == 200
        assert [p["title"] for p in resp.json()] == ["Release Process"]

        resp = await client.get(
            f"/api/v1/wiki/projects/{website.id}/search", params={"q": "holi"}, headers=get_auth_headers(bob),
        )
        assert [p["title"] for p in resp.json()] == ["Holidays"]


@pytest.mark.asyncio
class TestUpdateDelete:
    async def test_update_sets_last_editor(self, client: AsyncClient, website, alice, bob):
        page = await _create_simple(client, bob, website.id, "Runbook")
        resp = await client.patch(
            f"/api/v1/wiki/pages/{page['id']}",
            json={"content": "Step 1", "slug": "ops-runbook"},
            headers=get_auth_headers(alice),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["content"] == "Step 1"
        assert data["slug"] == "ops-runbook"
        assert data["created_by_id"] == bob.id
        assert data["last_edited_by"]["id"] == alice.id

    async def test_update_slug_collision(self, client: AsyncClient, website, bob):
        await _create_simple(client, bob, website.id, "Taken")
        page = await _create_simple(client, bob, website.id, "Other")
        resp = await client.patch(
            f"/api/v1/wiki/pages/{page['id']}", json={"slug": "taken"}, headers=get_auth_headers(bob),
        )
        assert resp.status_code == 409

    async def test_update_keeping_own_slug(self, client: AsyncClient, website, bob):
        page = await _create_simple(client, bob, website.id, "Mine")
        resp = await client.patch(
            f"/api/v1/wiki/pages/{page['id']}",
            json={"slug": "mine", "title": "Mine v2"},
            headers=get_auth_headers(bob),
        )
        assert resp.status_code == 200
        assert resp.json()["title"] == "Mine v2"

    async def test_delete_by_creator(self, client: AsyncClient, website, bob):
        page = await _create_simple(client, bob, website.id, "Temp")
        resp = await client.delete(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(bob))
        assert resp.status_code == 200

        resp = await client.get(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(bob))
        assert resp.status_code == 404

    async def test_delete_by_owner(self, client: AsyncClient, website, alice, bob):
        page = await _create_simple(client, bob, website.id, "Temp")
        resp = await client.delete(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(alice))
        assert resp.status_code == 200

    async def test_delete_by_other_member(self, client: AsyncClient, website, alice, bob):
        page = await _create_simple(client, alice, website.id, "Alice's")
        resp = await client.delete(f"/api/v1/wiki/pages/{page['id']}", headers=get_auth_headers(bob))
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You don't have permission to delete this wiki page"
