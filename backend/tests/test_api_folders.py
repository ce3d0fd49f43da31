"""
Integration tests for folder endpoints.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))


class TestCreateFolder:
    """Tests for POST /api/folder."""

    def test_create(self, client, user):
        """Should create a folder with zero counts."""
        response = client.post("/api/folder", json={"name": "  Campaigns ", "description": "Q3"})
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Campaigns"
        assert data["description"] == "Q3"
        assert data["totalUrls"] == 0
        assert data["activeUrls"] == 0

    def test_duplicate_name_any_case(self, client, user, create_folder):
        """Should reject a second active folder with the same name."""
        create_folder("Marketing")
        response = client.post("/api/folder", json={"name": "MARKETING"})
        assert response.status_code == 409
        assert response.json()["detail"] == "Folder with this name already exists"

    def test_same_name_for_different_owners(self, client, other_user, user, create_folder, login_as):
        """Should scope names to their owner."""
        create_folder("Shared")
        login_as(other_user["email"])
        assert client.post("/api/folder", json={"name": "Shared"}).status_code == 201

    def test_name_length(self, client, user):
        """Should enforce 2 to 50 characters."""
        assert client.post("/api/folder", json={"name": "A"}).status_code == 400
        assert client.post("/api/folder", json={"name": "x" * 51}).status_code == 400
        assert client.post("/api/folder", json={"name": "ok"}).status_code == 201


class TestListFolders:
    """Tests for GET /api/folder."""

    def test_counts(self, client, user, create_folder, create_link):
        """Should count live links, total and active."""
        folder = create_folder()
        create_link(folderId=folder["id"])
        create_link(folderId=folder["id"], isActive=False)
        deleted = create_link(folderId=folder["id"])
        client.delete(f"/api/url/{deleted['shortId']}")

        data = client.get("/api/folder").json()["data"]
        assert len(data) == 1
        assert data[0]["totalUrls"] == 2
        assert data[0]["activeUrls"] == 1

    def test_search(self, client, user, create_folder):
        """Should match names case-insensitively."""
        create_folder("Newsletters")
        create_folder("Social")
        data = client.get("/api/folder", params={"search": "news"}).json()["data"]
        assert [f["name"] for f in data] == ["Newsletters"]

    def test_deleted_hidden(self, client, user, create_folder):
        """Should list deleted folders only with showDeleted."""
        folder = create_folder()
        client.delete(f"/api/folder/{folder['id']}")
        assert client.get("/api/folder").json()["data"] == []
        deleted = client.get("/api/folder", params={"showDeleted": "true"}).json()["data"]
        assert [f["id"] for f in deleted] == [folder["id"]]


class TestFolderDetails:
    """Tests for GET /api/folder/{id}."""

    def test_details_with_links(self, client, user, create_folder, create_link):
        """Should return the folder and a page of its links."""
        folder = create_folder()
        create_link(customShortId="inside", folderId=folder["id"])
        create_link(customShortId="outside")

        response = client.get(f"/api/folder/{folder['id']}")
        assert response.status_code == 200
        data = response.json()
        assert data["folder"]["name"] == "Marketing"
        assert data["folder"]["totalUrls"] == 1
        assert [link["shortId"] for link in data["urls"]] == ["inside"]
        assert data["pagination"]["totalCount"] == 1

    def test_other_users_folder(self, client, other_user, user, create_folder, login_as):
        """Should answer 404 for folders the caller does not own."""
        folder = create_folder()
        login_as(other_user["email"])
        assert client.get(f"/api/folder/{folder['id']}").status_code == 404


class TestUpdateFolder:
    """Tests for PATCH /api/folder/{id}."""

    def test_rename(self, client, user, create_folder):
        """Should rename and describe a folder."""
        folder = create_folder()
        response = client.patch(f"/api/folder/{folder['id']}", json={"name": "Sales", "description": "All sales"})
        assert response.status_code == 200
        assert response.json()["name"] == "Sales"
        assert response.json()["description"] == "All sales"

    def test_rename_own_case(self, client, user, create_folder):
        """Should allow changing only the case of the own name."""
        folder = create_folder("Marketing")
        response = client.patch(f"/api/folder/{folder['id']}", json={"name": "marketing"})
        assert response.status_code == 200

    def test_rename_conflict(self, client, user, create_folder):
        """Should refuse a name held by another active folder."""
        create_folder("Taken")
        folder = create_folder("Mine")
        response = client.patch(f"/api/folder/{folder['id']}", json={"name": "taken"})
        assert response.status_code == 409

    def test_requires_a_field(self, client, user, create_folder):
        """Should reject an empty update."""
        folder = create_folder()
        assert client.patch(f"/api/folder/{folder['id']}", json={}).status_code == 400


class TestDeleteFolder:
    """Tests for folder soft delete, restore and purge."""

    def test_delete_orphans_links(self, client, user, create_folder, create_link):
        """Should keep the links live but without a folder."""
        folder = create_folder()
        link = create_link(folderId=folder["id"])

        response = client.delete(f"/api/folder/{folder['id']}")
        assert response.status_code == 200
        assert response.json() == {"message": "Folder moved to recycle bin", "orphanedUrls": 1}

        after = client.get(f"/api/url/{link['shortId']}").json()
        assert after["isDeleted"] is False
        assert after["folderId"] is None

    def test_deleted_name_can_be_reused(self, client, user, create_folder):
        """Should free the name while the folder is in the recycle bin."""
        folder = create_folder("Marketing")
        client.delete(f"/api/folder/{folder['id']}")
        create_folder("Marketing")

    def test_restore(self, client, user, create_folder):
        """Should bring a deleted folder back."""
        folder = create_folder()
        client.delete(f"/api/folder/{folder['id']}")
        response = client.patch(f"/api/folder/{folder['id']}/restore")
        assert response.status_code == 200
        assert response.json()["isDeleted"] is False
        assert client.get(f"/api/folder/{folder['id']}").status_code == 200

    def test_restore_name_conflict(self, client, user, create_folder):
        """Should refuse restoring onto a name that is in use again."""
        folder = create_folder("Marketing")
        client.delete(f"/api/folder/{folder['id']}")
        create_folder("marketing")

        response = client.patch(f"/api/folder/{folder['id']}/restore")
        assert response.status_code == 409
        assert response.json()["detail"] == "A folder with this name already exists"

    def test_purge_requires_soft_delete(self, client, user, create_folder):
        """Should refuse to purge a live folder."""
        folder = create_folder()
        assert client.delete(f"/api/folder/{folder['id']}/permanent").status_code == 409

        client.delete(f"/api/folder/{folder['id']}")
        response = client.delete(f"/api/folder/{folder['id']}/permanent")
        assert response.status_code == 200
        assert response.json()["message"] == "Folder permanently deleted"
        assert client.patch(f"/api/folder/{folder['id']}/restore").status_code == 404

    def test_purge_detaches_deleted_links(self, client, user, create_folder, create_link):
        """Should clear the folder on links still pointing at it."""
        folder = create_folder()
        link = create_link(folderId=folder["id"])
        client.delete(f"/api/url/{link['shortId']}")
        client.delete(f"/api/folder/{folder['id']}")
        client.delete(f"/api/folder/{folder['id']}/permanent")

        restored = client.patch(f"/api/url/{link['shortId']}/restore").json()
        assert restored["folderId"] is None


class TestRemoveUrls:
    """Tests for PATCH /api/folder/{id}/remove-urls."""

    def test_remove(self, client, user, create_folder, create_link):
        """Should detach only the listed links of this folder."""
        folder = create_folder()
        keep = create_link(folderId=folder["id"])
        drop = create_link(folderId=folder["id"])
        elsewhere = create_link()

        response = client.patch(
            f"/api/folder/{folder['id']}/remove-urls",
            json={"urlIds": [drop["id"], elsewhere["id"], 9999]},
        )
        assert response.status_code == 200
        assert response.json()["removedCount"] == 1

        assert client.get(f"/api/url/{drop['shortId']}").json()["folderId"] is None
        assert client.get(f"/api/url/{keep['shortId']}").json()["folderId"] == folder["id"]

    def test_remove_requires_ids(self, client, user, create_folder):
        """Should reject an empty id list."""
        folder = create_folder()
        response = client.patch(f"/api/folder/{folder['id']}/remove-urls", json={"urlIds": []})
        assert response.status_code == 422
