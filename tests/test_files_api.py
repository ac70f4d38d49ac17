"""HTTP tests for the /api/files router."""

from tests.conftest import auth_headers

ALICE = auth_headers("alice")
BOB = auth_headers("bob")


def _upload(client, name="a.txt", content=b"hello", parent_id=None, headers=ALICE):
    data = {"parent_id": parent_id} if parent_id else {}
    return client.post(
        "/api/files/upload",
        files={"file": (name, content, "text/plain")},
        data=data,
        headers=headers,
    )


def _folder(client, name, parent_id=None, headers=ALICE):
    resp = client.post("/api/files/folders", json={"name": name, "parent_id": parent_id}, headers=headers)
    assert resp.status_code == 201
    return resp.json()


class TestAuth:

    def test_missing_identity_is_401(self, client):
        resp = client.get("/api/files/")
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_malformed_identity_is_401(self, client):
        resp = client.get("/api/files/", headers={"X-User-Id": "../etc"})
        assert resp.status_code == 401


class TestUploadAndList:

    def test_upload_then_list(self, client):
        resp = _upload(client)
        assert resp.status_code == 201
        body = resp.json()
        assert body["duplicate"] is False
        assert body["file"]["size"] == 5
        assert body["file"]["download_url"] == f"/api/files/{body['file']['id']}/download"

        listing = client.get("/api/files/", headers=ALICE).json()
        assert [n["name"] for n in listing] == ["a.txt"]
        assert client.get("/api/files/", headers=BOB).json() == []

    def test_duplicate_upload_returns_200(self, client):
        first = _upload(client).json()["file"]
        resp = _upload(client)
        assert resp.status_code == 200
        assert resp.json()["duplicate"] is True
        assert resp.json()["file"]["id"] == first["id"]

    def test_upload_into_unknown_folder_is_400(self, client):
        resp = _upload(client, parent_id="0" * 32)
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_PARENT"

    def test_root_alias_for_parent(self, client):
        resp = _upload(client, parent_id="root")
        assert resp.status_code == 201
        assert resp.json()["file"]["parent_id"] is None

    def test_list_folder_contents(self, client):
        docs = _folder(client, "Docs")
        _upload(client, "inner.txt", parent_id=docs["id"])
        _upload(client, "outer.txt")

        inner = client.get("/api/files/", params={"folder": docs["id"]}, headers=ALICE).json()
        assert [n["name"] for n in inner] == ["inner.txt"]
        root = client.get("/api/files/", params={"sort": "name", "order": "asc"}, headers=ALICE).json()
        assert [n["name"] for n in root] == ["Docs", "outer.txt"]

    def test_batch_upload_with_paths(self, client):
        resp = client.post(
            "/api/files/upload-multiple",
            files=[
                ("files", ("a.txt", b"aaa", "text/plain")),
                ("files", ("b.txt", b"bb", "text/plain")),
            ],
            data={"file_paths": ["trip/a.txt", "trip/day1/b.txt"]},
            headers=ALICE,
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["folders_created"] == 2
        assert body["total_bytes"] == 5
        assert len(body["files"]) == 2

    def test_batch_paths_must_align(self, client):
        resp = client.post(
            "/api/files/upload-multiple",
            files=[("files", ("a.txt", b"a", "text/plain"))],
            data={"file_paths": ["x/a.txt", "x/b.txt"]},
            headers=ALICE,
        )
        assert resp.status_code == 400


class TestFolderOperations:

    def test_duplicate_folder_is_409(self, client):
        _folder(client, "Docs")
        resp = client.post("/api/files/folders", json={"name": "Docs"}, headers=ALICE)
        assert resp.status_code == 409

    def test_rename(self, client):
        node = _upload(client).json()["file"]
        resp = client.patch(f"/api/files/{node['id']}/rename", json={"name": "b.txt"}, headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["name"] == "b.txt"

    def test_move_by_id_and_by_name(self, client):
        docs = _folder(client, "Docs")
        node = _upload(client).json()["file"]

        resp = client.post(f"/api/files/{node['id']}/move", json={"target_folder_id": docs["id"]}, headers=ALICE)
        assert resp.json()["parent_id"] == docs["id"]

        resp = client.post(f"/api/files/{node['id']}/move", json={"target_folder_id": "root"}, headers=ALICE)
        assert resp.json()["parent_id"] is None

        resp = client.post(f"/api/files/{node['id']}/move", json={"target_folder_name": "Docs"}, headers=ALICE)
        assert resp.json()["parent_id"] == docs["id"]

    def test_move_into_self_is_400(self, client):
        docs = _folder(client, "Docs")
        resp = client.post(f"/api/files/{docs['id']}/move", json={"target_folder_id": docs["id"]}, headers=ALICE)
        assert resp.status_code == 400
        assert resp.json()["error"] == "SELF_MOVE"

    def test_move_into_descendant_is_400(self, client):
        a = _folder(client, "A")
        b = _folder(client, "B", a["id"])
        resp = client.post(f"/api/files/{a['id']}/move", json={"target_folder_id": b["id"]}, headers=ALICE)
        assert resp.status_code == 400
        assert resp.json()["error"] == "CIRCULAR_MOVE"

    def test_copy(self, client):
        node = _upload(client).json()["file"]
        resp = client.post(f"/api/files/{node['id']}/copy", json={}, headers=ALICE)
        assert resp.status_code == 201
        assert resp.json()["name"] == "a.txt (Copy)"

    def test_info_for_stranger_is_404(self, client):
        node = _upload(client).json()["file"]
        assert client.get(f"/api/files/{node['id']}/info", headers=ALICE).status_code == 200
        resp = client.get(f"/api/files/{node['id']}/info", headers=BOB)
        assert resp.status_code == 404
        assert resp.json()["error"] == "NODE_NOT_FOUND"


class TestTrashRoutes:

    def test_trash_restore_and_delete(self, client):
        node = _upload(client).json()["file"]

        resp = client.post(f"/api/files/{node['id']}/trash", headers=ALICE)
        assert resp.json()["in_trash"] is True
        assert [n["id"] for n in client.get("/api/files/trash", headers=ALICE).json()] == [node["id"]]
        assert client.get("/api/files/", headers=ALICE).json() == []

        resp = client.post(f"/api/files/{node['id']}/restore", headers=ALICE)
        assert resp.json()["in_trash"] is False

        resp = client.delete(f"/api/files/{node['id']}", headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["removed"] == 1

    def test_empty_trash(self, client):
        for name in ("a.txt", "b.txt"):
            node = _upload(client, name).json()["file"]
            client.post(f"/api/files/{node['id']}/trash", headers=ALICE)
        resp = client.delete("/api/files/trash/empty", headers=ALICE)
        assert resp.status_code == 200
        assert resp.json()["deleted_count"] == 2

    def test_storage_overview(self, client):
        _upload(client, content=b"x" * 100)
        body = client.get("/api/files/storage/overview", headers=ALICE).json()
        assert body["used_storage"] == 100
        assert body["total_files"] == 1
        assert body["remaining"] == body["quota_bytes"] - 100


class TestSharingRoutes:

    def test_share_list_and_download_as_recipient(self, client):
        node = _upload(client).json()["file"]
        resp = client.post(f"/api/files/{node['id']}/share", json={"user_id": "bob"}, headers=ALICE)
        assert resp.status_code == 201
        assert resp.json()["permission"] == "view"

        shared = client.get("/api/files/shared", headers=BOB).json()
        assert shared[0]["file"]["id"] == node["id"]
        assert shared[0]["owner_id"] == "alice"

        resp = client.get(f"/api/files/{node['id']}/download", headers=BOB)
        assert resp.status_code == 200
        assert resp.content == b"hello"

    def test_repeat_share_is_409(self, client):
        node = _upload(client).json()["file"]
        client.post(f"/api/files/{node['id']}/share", json={"user_id": "bob"}, headers=ALICE)
        resp = client.post(f"/api/files/{node['id']}/share", json={"user_id": "bob"}, headers=ALICE)
        assert resp.status_code == 409

    def test_unshare_and_remove_share(self, client):
        node = _upload(client).json()["file"]
        client.post(f"/api/files/{node['id']}/share", json={"user_id": "bob"}, headers=ALICE)
        assert client.delete(f"/api/files/{node['id']}/share/bob", headers=ALICE).status_code == 204

        client.post(f"/api/files/{node['id']}/share", json={"user_id": "bob"}, headers=ALICE)
        assert client.post(f"/api/files/{node['id']}/remove-share", headers=BOB).status_code == 204
        assert client.get("/api/files/shared", headers=BOB).json() == []

    def test_public_link_download_and_revoke(self, client):
        node = _upload(client).json()["file"]
        resp = client.post(f"/api/files/{node['id']}/share-link", headers=ALICE)
        body = resp.json()
        assert body["url"].endswith(f"/api/files/public/{body['token']}")

        public = client.get(f"/api/files/public/{body['token']}")
        assert public.status_code == 200
        assert public.content == b"hello"
        assert "a.txt" in public.headers["content-disposition"]

        client.post(f"/api/files/{node['id']}/revoke-link", headers=ALICE)
        assert client.get(f"/api/files/public/{body['token']}").status_code == 404


class TestRecentRoute:

    def test_recent_activity(self, client):
        _upload(client)
        feed = client.get("/api/files/recent", headers=ALICE).json()
        assert feed[0]["type"] == "upload"
        assert feed[0]["description"] == "You uploaded a.txt"
        assert feed[0]["icon"] == "file_upload"
