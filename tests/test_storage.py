import io

import pytest
from werkzeug.datastructures import FileStorage

from errors import ValidationError
from storage import MAX_FILE_SIZE


def _upload(data=b"\x89PNG...", filename="harmony.png", content_type="image/png"):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)


def test_upload_stores_under_folder(fake_storage):
    url = fake_storage.upload(_upload(), "groups")

    [path] = fake_storage.client.objects
    assert path.startswith("uploads/groups/")
    assert path.endswith(".png")
    assert url.endswith(path)
    assert fake_storage.client.objects[path][1]["content-type"] == "image/png"


def test_upload_rejects_other_types(fake_storage):
    with pytest.raises(ValidationError) as exc:
        fake_storage.upload(_upload(filename="notes.txt", content_type="text/plain"))
    assert exc.value.key == "storage.invalid_type"


def test_upload_rejects_large_files(fake_storage):
    with pytest.raises(ValidationError) as exc:
        fake_storage.upload(_upload(data=b"0" * (MAX_FILE_SIZE + 1)))
    assert exc.value.key == "storage.too_large"


def test_upload_needs_a_file(fake_storage):
    with pytest.raises(ValidationError):
        fake_storage.upload(None)


def test_delete_by_public_url(fake_storage):
    url = fake_storage.upload(_upload(), "judges")

    path = fake_storage.delete(url)

    assert path.startswith("uploads/judges/")
    assert fake_storage.client.objects == {}


def test_delete_rejects_foreign_urls(fake_storage):
    with pytest.raises(ValidationError):
        fake_storage.delete("https://elsewhere.example.com/photo.png")


def test_upload_route(admin_client, fake_storage):
    response = admin_client.post(
        "/admin/uploads",
        data={"file": (io.BytesIO(b"\xff\xd8jpeg"), "mei.jpg", "image/jpeg"), "folder": "participants"},
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    assert "/uploads/participants/" in response.get_json()["url"]

    response = admin_client.delete("/admin/uploads", json={"url": response.get_json()["url"]})
    assert response.status_code == 200
    assert fake_storage.client.objects == {}


def test_upload_route_without_storage(admin_client):
    response = admin_client.post(
        "/admin/uploads?lang=en",
        data={"file": (io.BytesIO(b"\xff\xd8jpeg"), "mei.jpg", "image/jpeg")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 500
    assert response.get_json() == {"error": "File storage is not configured"}


def test_extension_follows_the_content_type(fake_storage):
    fake_storage.upload(_upload(filename="page.html", content_type="image/png"), "groups")

    [path] = fake_storage.client.objects
    assert path.startswith("uploads/groups/")
    assert path.endswith(".png")


@pytest.mark.parametrize("folder", ["../../site", "groups/../..", "", "avatars"])
def test_upload_rejects_unknown_folders(fake_storage, folder):
    with pytest.raises(ValidationError) as exc:
        fake_storage.upload(_upload(), folder)
    assert exc.value.key == "storage.invalid_folder"
    assert fake_storage.client.objects == {}


def test_upload_route_rejects_path_in_folder(admin_client, fake_storage):
    response = admin_client.post(
        "/admin/uploads",
        data={"file": (io.BytesIO(b"<html>"), "page.html", "image/png"), "folder": "../../site"},
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert fake_storage.client.objects == {}
