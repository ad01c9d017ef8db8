"""
Integration tests for the HTTP API.

Requests go through the full application stack (middleware, exception
handlers, dependencies) against the in-memory test database.
"""
import re
from datetime import timedelta

import pytest
from sqlalchemy import update

from moddocs.core.models import utcnow
from moddocs.modules.mods.mailer import get_mailer
from moddocs.modules.mods.models import ModInvitation

from conftest import TEST_PASSWORD, auth_headers

API = "/api/v1"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

pytestmark = pytest.mark.integration


def error_fields(response) -> list:
    return [e["field"] for e in response.json()["error"]["details"]["errors"]]


def invitation_token(message) -> str:
    return re.search(r"/invitations/(\S+)", message.get_content()).group(1)


class TestAuthEndpoints:
    """Test registration, login and the profile endpoint."""

    async def test_register_login_me(self, client):
        response = await client.post(f"{API}/auth/register", json={
            "email": "New@Example.com",
            "username": "NewUser",
            "full_name": "New User",
            "password": TEST_PASSWORD,
        })
        assert response.status_code == 201
        assert response.json()["username"] == "newuser"
        assert "hashed_password" not in response.json()

        response = await client.post(
            f"{API}/auth/login", data={"username": "new@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["token"]["access_token"]

        response = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["display_name"] == "New User"

    async def test_duplicate_registration(self, client, owner):
        response = await client.post(f"{API}/auth/register", json={
            "email": "owner@example.com",
            "username": "someone",
            "password": TEST_PASSWORD,
        })
        assert response.status_code == 409

    async def test_bad_login(self, client, owner):
        response = await client.post(
            f"{API}/auth/login", data={"username": "owner", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_me_requires_token(self, client):
        assert (await client.get(f"{API}/auth/me")).status_code == 401

        response = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401


class TestModEndpoints:
    """Test mod CRUD and access control."""

    async def test_create_mods_with_colliding_names(self, client, owner, outsider):
        first = await client.post(f"{API}/mods", json={"name": "My Mod"}, headers=auth_headers(owner))
        second = await client.post(f"{API}/mods", json={"name": "My Mod"}, headers=auth_headers(outsider))

        assert first.status_code == second.status_code == 201
        assert first.json()["slug"] == "my-mod"
        assert first.json()["visibility"] == "private"
        assert second.json()["slug"] == "my-mod-1"

    async def test_create_requires_login(self, client):
        response = await client.post(f"{API}/mods", json={"name": "Anon"})
        assert response.status_code == 401

    async def test_blank_name_rejected(self, client, owner):
        response = await client.post(f"{API}/mods", json={"name": "   "}, headers=auth_headers(owner))
        assert response.status_code == 422
        assert error_fields(response) == ["name"]

    async def test_list_mods(self, client, team_mod, public_mod, owner, editor_user):
        response = await client.get(f"{API}/mods", headers=auth_headers(owner))
        owned = {m["slug"]: m for m in response.json()["owned"]}
        assert set(owned) == {"test-mod", "public-mod"}
        assert owned["test-mod"]["collaborators_count"] == 3

        response = await client.get(f"{API}/mods", headers=auth_headers(editor_user))
        data = response.json()
        assert data["owned"] == []
        assert [(m["slug"], m["role"]) for m in data["collaborative"]] == [("test-mod", "editor")]

    async def test_private_mod_visibility(self, client, team_mod, viewer_user, outsider):
        assert (await client.get(f"{API}/mods/test-mod")).status_code == 403
        response = await client.get(f"{API}/mods/test-mod", headers=auth_headers(outsider))
        assert response.status_code == 403

        response = await client.get(f"{API}/mods/test-mod", headers=auth_headers(viewer_user))
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "viewer"
        assert data["can_edit"] is False
        assert data["can_manage"] is False

    async def test_public_mod_is_open(self, client, public_mod):
        response = await client.get(f"{API}/mods/public-mod")
        assert response.status_code == 200
        assert response.json()["role"] is None

    async def test_unknown_mod(self, client, owner):
        response = await client.get(f"{API}/mods/nope", headers=auth_headers(owner))
        assert response.status_code == 404

    async def test_mod_named_dashboard_stays_reachable(self, client, owner):
        response = await client.post(f"{API}/mods", json={"name": "Dashboard"}, headers=auth_headers(owner))
        assert response.json()["slug"] == "dashboard-1"

        response = await client.get(f"{API}/mods/dashboard-1", headers=auth_headers(owner))
        assert response.json()["mod"]["name"] == "Dashboard"

        response = await client.get(f"{API}/mods/dashboard", headers=auth_headers(owner))
        assert response.json()["owned_mods"] == 1
        assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"

    async def test_update_keeps_slug(self, client, private_mod, owner):
        response = await client.patch(
            f"{API}/mods/test-mod",
            json={"name": "Renamed", "visibility": "public"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["slug"] == "test-mod"
        assert response.json()["visibility"] == "public"

    async def test_only_owner_manages_settings(self, client, team_mod, admin_user, editor_user):
        for user in (admin_user, editor_user):
            response = await client.patch(f"{API}/mods/test-mod", json={"name": "X"}, headers=auth_headers(user))
            assert response.status_code == 403
            response = await client.delete(f"{API}/mods/test-mod", headers=auth_headers(user))
            assert response.status_code == 403

    async def test_delete_mod(self, client, private_mod, owner):
        response = await client.delete(f"{API}/mods/test-mod", headers=auth_headers(owner))
        assert response.json()["message"] == "Mod deleted successfully!"

        response = await client.get(f"{API}/mods/test-mod", headers=auth_headers(owner))
        assert response.status_code == 404

    async def test_dashboard(self, client, private_mod, owner):
        await client.post(f"{API}/mods/test-mod/pages", json={"title": "Intro"}, headers=auth_headers(owner))

        response = await client.get(f"{API}/mods/dashboard", headers=auth_headers(owner))
        data = response.json()
        assert data["owned_mods"] == 1
        assert data["total_pages"] == 1
        assert data["recent_pages"][0]["mod_slug"] == "test-mod"


class TestCollaboratorEndpoints:
    """Test collaborator management and invitations over HTTP."""

    async def test_invite_and_accept(self, client, private_mod, owner, outsider, mailer):
        response = await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "outsider", "role": "editor"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        assert response.json()["message"] == "Collaborator added successfully!"
        assert response.json()["email_sent"] is True

        token = invitation_token(mailer.outbox[0])

        response = await client.get(f"{API}/invitations/{token}")
        assert response.json()["status"] == "pending"
        assert response.json()["mod"]["slug"] == "test-mod"

        response = await client.post(f"{API}/invitations/{token}/accept", headers=auth_headers(outsider))
        assert response.status_code == 200
        assert response.json()["message"] == "You are now a collaborator on Test Mod!"

        response = await client.post(f"{API}/invitations/{token}/accept", headers=auth_headers(outsider))
        assert response.json()["message"] == "You have already accepted this invitation."
        assert response.json()["already_accepted"] is True

    async def test_failed_email_is_reported(self, app, client, private_mod, owner, outsider, failing_mailer):
        app.dependency_overrides[get_mailer] = lambda: failing_mailer

        response = await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "outsider", "role": "viewer"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        assert response.json()["email_sent"] is False
        assert response.json()["message"].endswith("(Email notification failed to send)")

    async def test_unknown_user(self, client, private_mod, owner):
        response = await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "ghost", "role": "viewer"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422
        assert error_fields(response) == ["username"]

    async def test_admin_cannot_grant_admin(self, client, team_mod, admin_user, outsider):
        response = await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "outsider", "role": "admin"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 403

    async def test_list_collaborators(self, client, team_mod, admin_user, editor_user):
        response = await client.get(f"{API}/mods/test-mod/collaborators", headers=auth_headers(admin_user))
        data = response.json()
        assert data["owner"]["user"]["username"] == "owner"
        assert len(data["collaborators"]) == 3
        assert data["can_grant_admin"] is False

        response = await client.get(f"{API}/mods/test-mod/collaborators", headers=auth_headers(editor_user))
        assert response.status_code == 403

    async def test_change_role(self, client, team_mod, owner, viewer_user):
        response = await client.patch(
            f"{API}/mods/test-mod/collaborators/{viewer_user.id}",
            json={"role": "editor"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 200
        assert response.json()["role"] == "editor"

    async def test_editor_cannot_remove_others(self, client, team_mod, editor_user, viewer_user):
        response = await client.delete(
            f"{API}/mods/test-mod/collaborators/{viewer_user.id}", headers=auth_headers(editor_user)
        )
        assert response.status_code == 403

    async def test_member_can_leave(self, client, team_mod, viewer_user):
        response = await client.delete(
            f"{API}/mods/test-mod/collaborators/{viewer_user.id}", headers=auth_headers(viewer_user)
        )
        assert response.json()["message"] == "You have left the mod."

        response = await client.get(f"{API}/mods/test-mod", headers=auth_headers(viewer_user))
        assert response.status_code == 403

    async def test_admin_removes_editor(self, client, team_mod, admin_user, editor_user):
        response = await client.delete(
            f"{API}/mods/test-mod/collaborators/{editor_user.id}", headers=auth_headers(admin_user)
        )
        assert response.json()["message"] == "Collaborator removed successfully!"

    async def test_expired_invitation_is_gone(self, client, session_factory, private_mod, owner, outsider, mailer):
        await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "outsider", "role": "editor"},
            headers=auth_headers(owner),
        )
        token = invitation_token(mailer.outbox[0])

        async with session_factory() as session:
            await session.execute(
                update(ModInvitation)
                .where(ModInvitation.token == token)
                .values(expires_at=utcnow() - timedelta(hours=1))
            )
            await session.commit()

        response = await client.post(f"{API}/invitations/{token}/accept", headers=auth_headers(outsider))
        assert response.status_code == 410
        assert response.json()["error"]["details"]["mod"] == "test-mod"

    async def test_invitation_for_someone_else(self, client, private_mod, owner, outsider, viewer_user, mailer):
        await client.post(
            f"{API}/mods/test-mod/collaborators",
            json={"username": "outsider", "role": "editor"},
            headers=auth_headers(owner),
        )
        token = invitation_token(mailer.outbox[0])

        response = await client.post(f"{API}/invitations/{token}/accept", headers=auth_headers(viewer_user))
        assert response.status_code == 403

    async def test_unknown_invitation(self, client):
        assert (await client.get(f"{API}/invitations/missing")).status_code == 404


class TestPageEndpoints:
    """Test page endpoints."""

    async def create_page(self, client, user, **payload):
        response = await client.post(f"{API}/mods/test-mod/pages", json=payload, headers=auth_headers(user))
        assert response.status_code == 201, response.text
        return response.json()

    async def test_editor_builds_tree(self, client, team_mod, editor_user):
        guide = await self.create_page(client, editor_user, title="Guide")
        install = await self.create_page(client, editor_user, title="Install", parent_id=guide["id"])

        response = await client.get(f"{API}/mods/test-mod/pages/install", headers=auth_headers(editor_user))
        data = response.json()
        assert [crumb["slug"] for crumb in data["path"]] == ["guide", "install"]
        assert data["depth"] == 1
        assert data["can_edit"] is True
        assert data["page"]["parent_id"] == guide["id"]

        response = await client.get(f"{API}/mods/test-mod/pages", headers=auth_headers(editor_user))
        tree = response.json()["tree"]
        assert tree[0]["children"][0]["id"] == install["id"]

    async def test_page_titled_search_stays_reachable(self, client, private_mod, owner):
        page = await self.create_page(client, owner, title="Search", published=True)
        assert page["slug"] == "search-1"

        response = await client.get(f"{API}/mods/test-mod/pages/search-1", headers=auth_headers(owner))
        assert response.status_code == 200
        assert response.json()["page"]["title"] == "Search"

    async def test_viewer_cannot_edit(self, client, team_mod, viewer_user):
        response = await client.post(
            f"{API}/mods/test-mod/pages", json={"title": "Nope"}, headers=auth_headers(viewer_user)
        )
        assert response.status_code == 403

    async def test_unknown_parent_is_422(self, client, team_mod, owner):
        response = await client.post(
            f"{API}/mods/test-mod/pages",
            json={"title": "Child", "parent_id": "00000000-0000-0000-0000-000000000000"},
            headers=auth_headers(owner),
        )
        assert response.status_code == 422
        assert error_fields(response) == ["parent_id"]

    async def test_cycle_rejected(self, client, team_mod, owner):
        root = await self.create_page(client, owner, title="Root")
        child = await self.create_page(client, owner, title="Child", parent_id=root["id"])

        response = await client.patch(
            f"{API}/mods/test-mod/pages/root", json={"parent_id": child["id"]}, headers=auth_headers(owner)
        )
        assert response.status_code == 422

    async def test_reorder(self, client, team_mod, owner):
        a = await self.create_page(client, owner, title="A")
        b = await self.create_page(client, owner, title="B")

        response = await client.post(
            f"{API}/mods/test-mod/pages/reorder",
            json={"pages": [
                {"id": a["id"], "parent_id": b["id"], "order_index": 0},
                {"id": b["id"], "parent_id": a["id"], "order_index": 0},
            ]},
            headers=auth_headers(owner),
        )
        data = response.json()
        assert data["message"] == "Page order updated successfully!"
        assert (data["updated"], data["skipped"]) == (1, 1)

    async def test_search(self, client, team_mod, owner, viewer_user):
        await self.create_page(client, owner, title="Crafting", content="recipes")
        await self.create_page(client, owner, title="Secret", content="crafting notes", published=False)

        response = await client.get(
            f"{API}/mods/test-mod/pages/search", params={"query": "CRAFT"}, headers=auth_headers(viewer_user)
        )
        assert [p["slug"] for p in response.json()["pages"]] == ["crafting"]

        response = await client.get(
            f"{API}/mods/test-mod/pages/search", params={"query": "c"}, headers=auth_headers(viewer_user)
        )
        assert response.status_code == 422
        assert error_fields(response) == ["query"]

    async def test_autosave_and_delete(self, client, team_mod, editor_user):
        await self.create_page(client, editor_user, title="Notes")

        response = await client.post(
            f"{API}/mods/test-mod/pages/notes/autosave", json={"content": "draft"}, headers=auth_headers(editor_user)
        )
        assert response.json()["success"] is True

        response = await client.delete(f"{API}/mods/test-mod/pages/notes", headers=auth_headers(editor_user))
        assert response.json()["message"] == "Page deleted successfully!"

        response = await client.get(f"{API}/mods/test-mod/pages/notes", headers=auth_headers(editor_user))
        assert response.status_code == 404


class TestPublicDocs:
    """Test the anonymous documentation endpoints."""

    async def test_public_docs(self, client, public_mod, owner):
        headers = auth_headers(owner)
        await client.post(f"{API}/mods/public-mod/pages", json={"title": "Home", "content": "Welcome", "is_index": True}, headers=headers)
        await client.post(f"{API}/mods/public-mod/pages", json={"title": "Draft", "published": False}, headers=headers)

        response = await client.get(f"{API}/docs")
        assert [m["slug"] for m in response.json()["mods"]] == ["public-mod"]

        response = await client.get(f"{API}/docs/public-mod")
        data = response.json()
        assert data["index_page"]["content"] == "Welcome"
        assert [n["slug"] for n in data["navigation"]] == ["home"]

        assert (await client.get(f"{API}/docs/public-mod/home")).status_code == 200
        assert (await client.get(f"{API}/docs/public-mod/draft")).status_code == 404

    async def test_private_mod_docs_hidden(self, client, private_mod):
        assert (await client.get(f"{API}/docs/test-mod")).status_code == 404


class TestFileEndpoints:
    """Test file upload and download."""

    async def upload(self, client, user, name="shot.png", data=PNG_BYTES, content_type="image/png", path="files"):
        return await client.post(
            f"{API}/mods/test-mod/{path}",
            files={"file": (name, data, content_type)},
            headers=auth_headers(user),
        )

    async def test_upload_and_download(self, client, team_mod, editor_user, viewer_user, storage_root):
        response = await self.upload(client, editor_user, name="Screen shot.png")
        assert response.status_code == 201
        uploaded = response.json()["file"]
        assert uploaded["is_image"] is True
        assert uploaded["url"].startswith("http://testserver/storage/mods/")

        response = await client.get(
            f"{API}/mods/test-mod/files/{uploaded['id']}/download", headers=auth_headers(viewer_user)
        )
        assert response.status_code == 200
        assert response.content == PNG_BYTES
        assert response.headers["content-type"] == "image/png"
        assert "Screen%20shot.png" in response.headers["content-disposition"]

        response = await client.get(f"{API}/mods/test-mod/files", headers=auth_headers(viewer_user))
        assert response.json()["total"] == 1
        assert response.json()["pages"] == 1

    async def test_viewer_cannot_upload(self, client, team_mod, viewer_user, storage_root):
        response = await self.upload(client, viewer_user)
        assert response.status_code == 403

    async def test_quick_upload_filters_types(self, client, team_mod, editor_user, storage_root):
        response = await self.upload(
            client, editor_user, name="tool.exe", data=b"MZ", content_type="application/x-msdownload",
            path="files/quick-upload",
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "File type not allowed."

        response = await self.upload(client, editor_user, path="files/quick-upload")
        assert response.status_code == 201

    async def test_delete_file(self, client, team_mod, editor_user, storage_root):
        file_id = (await self.upload(client, editor_user)).json()["file"]["id"]

        response = await client.delete(f"{API}/mods/test-mod/files/{file_id}", headers=auth_headers(editor_user))
        assert response.json()["message"] == "File deleted successfully!"

        response = await client.get(f"{API}/mods/test-mod/files/{file_id}", headers=auth_headers(editor_user))
        assert response.status_code == 404

    async def test_page_files(self, client, team_mod, owner, storage_root):
        page = (await client.post(
            f"{API}/mods/test-mod/pages", json={"title": "Gallery"}, headers=auth_headers(owner)
        )).json()

        response = await client.post(
            f"{API}/mods/test-mod/files",
            files={"file": ("a.png", PNG_BYTES, "image/png")},
            data={"page_id": page["id"]},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201

        response = await client.get(f"{API}/mods/test-mod/pages/gallery/files", headers=auth_headers(owner))
        assert [f["page_id"] for f in response.json()["files"]] == [page["id"]]


class TestHealthEndpoints:
    async def test_health(self, client):
        response = await client.get(f"{API}/health")
        assert response.json()["status"] == "healthy"

    async def test_metrics(self, client):
        response = await client.get(f"{API}/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text
