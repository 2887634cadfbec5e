# tests/test_organizations.py — Organization and membership tests
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from models import OrganizationMember, MemberRole
from tests.conftest import get_auth_headers


@pytest.mark.asyncio
async def test_get_organization_before_setup(client: AsyncClient):
    """Nothing to return until someone creates the organization"""
    resp = await client.get("/api/v1/organization")
    assert resp.status_code == 200
    assert resp.json() is None


@pytest.mark.asyncio
async def test_create_organization_makes_caller_owner(client: AsyncClient, alice):
    resp = await client.post(
        "/api/v1/organization",
        json={"name": "Acme", "slug": "acme", "description": "Acme Corp"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["slug"] == "acme"
    assert len(data["members"]) == 1
    assert data["members"][0]["user_id"] == alice.id
    assert data["members"][0]["role"] == "OWNER"


@pytest.mark.asyncio
async def test_only_one_organization(client: AsyncClient, acme, carol):
    resp = await client.post(
        "/api/v1/organization",
        json={"name": "Other", "slug": "other"},
        headers=get_auth_headers(carol),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == (
        "Organization already exists. Self-hosted version supports only one organization."
    )


@pytest.mark.asyncio
async def test_create_organization_rejects_bad_slug(client: AsyncClient, alice):
    resp = await client.post(
        "/api/v1/organization",
        json={"name": "Acme", "slug": "Acme Corp"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_organization_lists_members(client: AsyncClient, acme, alice, bob):
    resp = await client.get("/api/v1/organization")
    assert resp.status_code == 200
    roles = {m["user"]["email"]: m["role"] for m in resp.json()["members"]}
    assert roles == {"alice@acme.test": "OWNER", "bob@acme.test": "MEMBER"}


@pytest.mark.asyncio
async def test_update_organization_owner(client: AsyncClient, acme, alice):
    resp = await client.patch(
        f"/api/v1/organization/{acme.id}",
        json={"name": "Acme Inc"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "Acme Inc"
    assert resp.json()["description"] == "Acme Corp"


@pytest.mark.asyncio
async def test_update_organization_member_forbidden(client: AsyncClient, acme, bob):
    resp = await client.patch(
        f"/api/v1/organization/{acme.id}",
        json={"name": "Bob's Acme"},
        headers=get_auth_headers(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You don't have permission to update this organization"


@pytest.mark.asyncio
async def test_add_member(client: AsyncClient, acme, alice, carol):
    resp = await client.post(
        f"/api/v1/organization/{acme.id}/members",
        json={"email": "carol@elsewhere.test", "role": "ADMIN"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["user_id"] == carol.id
    assert data["role"] == "ADMIN"
    assert data["user"]["name"] == "Carol"


@pytest.mark.asyncio
async def test_add_member_unknown_user(client: AsyncClient, acme, alice):
    resp = await client.post(
        f"/api/v1/organization/{acme.id}/members",
        json={"email": "ghost@nowhere.test"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_add_member_twice(client: AsyncClient, acme, alice):
    resp = await client.post(
        f"/api/v1/organization/{acme.id}/members",
        json={"email": "bob@acme.test"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == "User is already a member of this organization"


@pytest.mark.asyncio
async def test_add_member_requires_admin(client: AsyncClient, acme, bob, carol):
    resp = await client.post(
        f"/api/v1/organization/{acme.id}/members",
        json={"email": "carol@elsewhere.test"},
        headers=get_auth_headers(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You don't have permission to add members"


@pytest.mark.asyncio
async def test_cannot_add_second_owner(client: AsyncClient, acme, alice, carol):
    resp = await client.post(
        f"/api/v1/organization/{acme.id}/members",
        json={"email": "carol@elsewhere.test", "role": "OWNER"},
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_remove_member(client: AsyncClient, db_session, acme, alice, bob):
    resp = await client.delete(
        f"/api/v1/organization/{acme.id}/members/{bob.id}",
        headers=get_auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    result = await db_session.execute(
        select(OrganizationMember).where(OrganizationMember.organization_id == acme.id)
    )
    assert [m.user_id for m in result.scalars().all()] == [alice.id]


@pytest.mark.asyncio
async def test_owner_cannot_be_removed(client: AsyncClient, db_session, acme, alice, carol):
    """Not even by an admin, and not by the owner themselves"""
    db_session.add(OrganizationMember(user_id=carol.id, organization_id=acme.id, role=MemberRole.ADMIN))
    await db_session.commit()

    for caller in (carol, alice):
        resp = await client.delete(
            f"/api/v1/organization/{acme.id}/members/{alice.id}",
            headers=get_auth_headers(caller),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot remove the organization owner"


@pytest.mark.asyncio
async def test_member_cannot_remove(client: AsyncClient, acme, alice, bob):
    resp = await client.delete(
        f"/api/v1/organization/{acme.id}/members/{alice.id}",
        headers=get_auth_headers(bob),
    )
    assert resp.status_code == 403
    assert resp.json()["detail"] == "You don't have permission to remove members"
