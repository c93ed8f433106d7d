"""
Photo uploads to a Supabase Storage bucket.

Objects are stored as uploads/<folder>/<uuid>.<ext> and referenced by their
public URL, which is also how they are deleted again.
"""
import logging
import uuid

from supabase import create_client

from errors import StoreError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
MAX_FILE_SIZE = 5 * 1024 * 1024
FOLDERS = ("photos", "groups", "participants", "judges")


class PhotoStorage:
    def __init__(self, client, bucket="photos"):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, file, folder="photos"):
        """Upload a werkzeug FileStorage and return its public URL."""
        if file is None or not file.filename:
            raise ValidationError("storage.missing_file")
        if file.mimetype not in ALLOWED_TYPES:
            raise ValidationError("storage.invalid_type")
        if folder not in FOLDERS:
            raise ValidationError("storage.invalid_folder")

        data = file.read()
        if len(data) > MAX_FILE_SIZE:
            raise ValidationError("storage.too_large")

        path = f"uploads/{folder}/{uuid.uuid4()}.{ALLOWED_TYPES[file.mimetype]}"

        try:
            self._bucket().upload(path, data, file_options={"content-type": file.mimetype, "upsert": "false"})
            url = self._bucket().get_public_url(path)
        except Exception:
            logger.exception("Photo upload to %s failed", path)
            raise StoreError("storage.upload_failed")

        logger.info("Uploaded photo %s", path)
        return url

    def path_from_url(self, url):
        marker = f"/storage/v1/object/public/{self.bucket}/"
        if not url or marker not in url:
            raise ValidationError("storage.invalid_url")
        return url.split(marker, 1)[1].split("?", 1)[0]

    def delete(self, url):
        path = self.path_from_url(url)
        try:
            self._bucket().remove([path])
        except Exception:
            logger.exception("Photo delete of %s failed", path)
            raise StoreError("storage.delete_failed")
        return path


def create_photo_storage(app):
    """Build the storage from SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY, or None."""
    url = app.config.get("SUPABASE_URL")
    key = app.config.get("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        app.logger.info("Supabase not configured; photo uploads disabled")
        return None

    return PhotoStorage(create_client(url, key), app.config.get("PHOTO_BUCKET", "photos"))


def get_photo_storage(app):
    storage = app.extensions.get("photo_storage")
    if storage is None:
        raise StoreError("storage.unavailable")
    return storage
