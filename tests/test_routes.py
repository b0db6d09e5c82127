import os
from botocore.exceptions import ClientError

from conftest import make_image_bytes, stored_record


def stored_files(upload_dir):
    return sorted(os.listdir(upload_dir)) if os.path.isdir(upload_dir) else []


def upload(client, name="f.png", data=None, content_type="image/png"):
    data = make_image_bytes() if data is None else data
    return client.post("/api/v1/uploads", files={"image": (name, data, content_type)})


# ------------------------------
# /api/v1/uploads [POST]
# ------------------------------

def test_upload_image_success(test_client, upload_dir):
    resp = upload(test_client, name="Cover.PNG", data=make_image_bytes(32, 24))
    assert resp.status_code == 201
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    body = resp.json()
    assert set(body) == {"id", "filename", "originalName", "mimeType", "size", "width", "height", "url", "uploadedAt"}
    assert body["originalName"] == "Cover.PNG"
    assert body["mimeType"] == "image/png"
    assert (body["width"], body["height"]) == (32, 24)
    assert body["filename"].endswith(".png")
    assert body["url"] == f"http://testserver/uploads/{body['filename']}"
    assert stored_files(upload_dir) == [body["filename"]]


def test_upload_concrete_jpeg_scenario(test_client):
    data = make_image_bytes(800, 1200, fmt="JPEG", pad_to=2 * 1024 * 1024)
    resp = upload(test_client, name="page01.jpg", data=data, content_type="image/jpeg")
    assert resp.status_code == 201
    body = resp.json()
    assert body["width"] == 800
    assert body["height"] == 1200
    assert body["mimeType"] == "image/jpeg"
    assert body["size"] == 2097152

    listing = test_client.get("/api/v1/images", params={"limit": 1})
    assert listing.status_code == 200
    assert listing.json()["items"][0]["id"] == body["id"]


def test_upload_missing_file(test_client, upload_dir):
    resp = test_client.post("/api/v1/uploads", data={"note": "nothing attached"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No file uploaded"}
    assert stored_files(upload_dir) == []


def test_upload_disallowed_mime_type_leaves_nothing(test_client, upload_dir):
    resp = upload(test_client, name="f.gif", data=make_image_bytes(fmt="GIF"), content_type="image/gif")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Only JPEG and PNG files are allowed"}
    assert stored_files(upload_dir) == []
    assert test_client.get("/api/v1/images").json()["total"] == 0


def test_upload_oversized_file(test_app, test_settings, upload_dir):
    from fastapi.testclient import TestClient

    test_settings.max_file_size = 1024
    with TestClient(test_app) as client:
        resp = upload(client, data=make_image_bytes(64, 64, pad_to=4096))
        assert resp.status_code == 413
        assert resp.json() == {"error": "File too large. Max 1KB."}
        assert stored_files(upload_dir) == []
        assert client.get("/api/v1/images").json()["total"] == 0


def test_upload_undecodable_image_is_cleaned_up(test_client, upload_dir):
    resp = upload(test_client, name="broken.png", data=b"notanimage")
    assert resp.status_code == 400
    assert "error" in resp.json()
    assert stored_files(upload_dir) == []
    assert test_client.get("/api/v1/images").json()["total"] == 0


def test_upload_persistence_failure_removes_bytes(test_client, test_app, upload_dir, mocker):
    error = ClientError({"Error": {"Code": "InternalServerError", "Message": "boom"}}, "PutItem")
    mocker.patch.object(test_app.state.db, "create_record", side_effect=error)

    resp = upload(test_client)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to save image metadata"}
    assert stored_files(upload_dir) == []


def test_uploads_share_one_identity(test_client):
    first = upload(test_client).json()
    second = upload(test_client).json()
    db = test_client.app.state.db
    assert stored_record(db, first["id"]).user_id == stored_record(db, second["id"]).user_id


# ------------------------------
# /api/v1/images [GET list]
# ------------------------------

def test_list_images_empty(test_client):
    resp = test_client.get("/api/v1/images")
    assert resp.status_code == 200
    assert resp.json() == {"total": 0, "limit": 20, "offset": 0, "items": []}


def test_list_images_newest_first(test_client):
    ids = [upload(test_client, name=f"p{i}.png").json()["id"] for i in range(3)]

    body = test_client.get("/api/v1/images").json()
    assert body["total"] == 3
    assert [it["id"] for it in body["items"]] == list(reversed(ids))


def test_list_images_pagination(test_client):
    for i in range(5):
        upload(test_client, name=f"p{i}.png")

    for limit, offset in [(1, 0), (2, 1), (5, 0), (3, 4), (10, 5)]:
        body = test_client.get("/api/v1/images", params={"limit": limit, "offset": offset}).json()
        assert body["total"] == 5
        assert len(body["items"]) == max(0, min(limit, 5 - offset))


def test_list_images_clamps_parameters(test_client):
    body = test_client.get("/api/v1/images", params={"limit": 1000, "offset": -3}).json()
    assert body["limit"] == 100
    assert body["offset"] == 0

    body = test_client.get("/api/v1/images", params={"limit": 0}).json()
    assert body["limit"] == 20


def test_list_images_defaults_unparsable_parameters(test_client):
    resp = test_client.get("/api/v1/images", params={"limit": "many", "offset": "x"})
    assert resp.status_code == 200
    assert resp.json() == {"total": 0, "limit": 20, "offset": 0, "items": []}

    body = test_client.get("/api/v1/images", params={"limit": "5abc", "offset": "2.7"}).json()
    assert (body["limit"], body["offset"]) == (5, 2)


# ------------------------------
# /uploads/{storage_name} [GET]
# ------------------------------

def test_public_url_serves_bytes(test_client):
    data = make_image_bytes(5, 7)
    body = upload(test_client, data=data).json()

    resp = test_client.get(f"/uploads/{body['filename']}")
    assert resp.status_code == 200
    assert resp.content == data
    assert resp.headers["content-type"] == "image/png"


def test_public_url_unknown_or_unsafe_name(test_client):
    assert test_client.get("/uploads/123-456.png").status_code == 404
    assert test_client.get("/uploads/..%2Fsecret").status_code == 404


# ------------------------------
# health
# ------------------------------

def test_health_endpoints(test_client):
    assert test_client.get("/health").json()["status"] == "ok"
    assert test_client.get("/health/db").json() == {"status": "ok"}
    assert test_client.get("/health/storage").json() == {"status": "ok"}


def test_unknown_route(test_client):
    resp = test_client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert "error" in resp.json()
