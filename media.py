"""
Binary object store for meeting images and profile photos.

Objects are named `meeting-images/<millis>-<filename>`. The local store keeps
them under MEDIA_DIR and serves them from /media; the Firebase store uploads
to the configured Cloud Storage bucket and returns the public URL.
"""
import logging
import os
import re
import time
from functools import lru_cache
from typing import Dict, Optional

from firebase_admin import storage

import config
from database import create_document
from errors import BadRequestError, NotFoundError
from identity import firebase_app
from reports import can_view
from schemas import UserIdentity

logger = logging.getLogger(__name__)

PREFIX = "meeting-images"
_unsafe = re.compile(r"[^A-Za-z0-9._-]+")


def object_name(filename: Optional[str]) -> str:
    base = _unsafe.sub("_", os.path.basename(filename or "")).strip("._") or "upload"
    return f"{PREFIX}/{int(time.time() * 1000)}-{base}"


def check_image(content_type: Optional[str]) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise BadRequestError("Only image uploads are accepted")


def record_upload(db, saved: Dict[str, str], uploader: UserIdentity) -> None:
    create_document(db, "media", {"url": saved["url"], "uploadedBy": uploader.uid}, doc_id=saved["name"])


def can_fetch(db, user: UserIdentity, name: str, url: str) -> bool:
    """Admins always may; otherwise the uploader or a viewer of a report embedding the image."""
    if user.role == "admin":
        return True
    upload = db["media"].find_one({"_id": name})
    if upload and upload.get("uploadedBy") == user.uid:
        return True
    return any(can_view(user, report) for report in db["reports"].find({"images": url}))


class LocalMediaStore:
    def __init__(self, directory: str = config.MEDIA_DIR, base_url: str = "/media"):
        self.directory = os.path.abspath(directory)
        self.base_url = base_url.rstrip("/")

    def save(self, filename: Optional[str], data: bytes, content_type: Optional[str]) -> Dict[str, str]:
        check_image(content_type)
        name = object_name(filename)
        path = os.path.join(self.directory, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)
        logger.info("Stored %s (%d bytes)", name, len(data))
        return {"name": name, "url": self.url_for(name)}

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    def path_for(self, name: str) -> str:
        path = os.path.abspath(os.path.join(self.directory, name))
        if not path.startswith(self.directory + os.sep) or not os.path.isfile(path):
            raise NotFoundError("File not found")
        return path


class FirebaseMediaStore:
    def __init__(self, bucket=None):
        self.bucket = bucket if bucket is not None else storage.bucket(app=firebase_app(config.FIREBASE_CREDENTIALS))

    def save(self, filename: Optional[str], data: bytes, content_type: Optional[str]) -> Dict[str, str]:
        check_image(content_type)
        name = object_name(filename)
        blob = self.bucket.blob(name)
        blob.upload_from_string(data, content_type=content_type)
        blob.make_public()
        logger.info("Uploaded %s to bucket %s", name, self.bucket.name)
        return {"name": name, "url": blob.public_url}

    def url_for(self, name: str) -> str:
        return self.bucket.blob(name).public_url

    def path_for(self, name: str) -> str:
        raise NotFoundError("Files are served by Cloud Storage")


@lru_cache(maxsize=1)
def get_media_store():
    if config.MEDIA_BACKEND == "firebase":
        return FirebaseMediaStore()
    return LocalMediaStore()
