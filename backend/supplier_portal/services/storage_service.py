# Overview: Blob storage for supplier documents; stores uploads under a per-supplier namespace.

"""
Supplier Document Storage

Contract: given a file and an owner (supplier) id, store it under
supplier_documents/{supplier_id}/{uuid}-{filename} and return the
document entry kept in Supplier.uploaded_documents.

LocalBlobStore writes below UPLOAD_FOLDER and serves files back through
the suppliers blueprint. Any object with the same save/delete/resolve
methods can be placed in app.extensions["blob_store"] instead.
"""

from __future__ import annotations

import os
import shutil
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from ..time_utils import utcnow, to_utc_z


NAMESPACE = "supplier_documents"


class StorageError(Exception):
    """Raised when a file cannot be stored or located."""
    pass


class LocalBlobStore:
    def __init__(self, root: str, base_url: str):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")

    def _absolute(self, storage_path: str) -> str:
        path = os.path.abspath(os.path.join(self.root, storage_path))
        if not path.startswith(self.root + os.sep):
            raise StorageError("Invalid storage path")
        return path

    def save(self, file, owner_id: int) -> dict:
        """
        Store a werkzeug FileStorage (or any object with .filename and .save()).

        Returns {doc_name, storage_path, uploaded_at, url}.
        """
        original_name = (getattr(file, "filename", None) or "").strip()
        safe_name = secure_filename(original_name)
        if not safe_name:
            raise StorageError("File name is required")

        storage_path = f"{NAMESPACE}/{owner_id}/{uuid.uuid4().hex}-{safe_name}"
        destination = self._absolute(storage_path)

        try:
            os.makedirs(os.path.dirname(destination), exist_ok=True)
            file.save(destination)
        except OSError as exc:
            raise StorageError(f"Could not store {original_name}: {exc}") from exc

        return {
            "doc_name": original_name,
            "storage_path": storage_path,
            "uploaded_at": to_utc_z(utcnow()),
            "url": f"{self.base_url}/{storage_path}",
        }

    def resolve(self, storage_path: str) -> str:
        path = self._absolute(storage_path)
        if not os.path.isfile(path):
            raise StorageError("File not found")
        return path

    def delete(self, storage_path: str) -> None:
        path = self._absolute(storage_path)
        if os.path.isfile(path):
            os.remove(path)

    def delete_owner(self, owner_id: int) -> None:
        shutil.rmtree(self._absolute(f"{NAMESPACE}/{owner_id}"), ignore_errors=True)


def get_blob_store():
    store = current_app.extensions.get("blob_store")
    if store is not None:
        return store
    return LocalBlobStore(
        current_app.config["UPLOAD_FOLDER"],
        current_app.config.get("UPLOAD_BASE_URL", "/api/suppliers/documents"),
    )


def upload_documents(supplier_id: int, files) -> tuple[list[dict], list[dict]]:
    """
    Store several files independently.

    One failing file never aborts the others. Returns (uploaded, failed)
    where failed entries are {doc_name, error}.
    """
    store = get_blob_store()
    uploaded: list[dict] = []
    failed: list[dict] = []

    for file in files:
        name = getattr(file, "filename", None) or ""
        try:
            uploaded.append(store.save(file, supplier_id))
        except (StorageError, OSError) as exc:
            current_app.logger.warning("Upload failed supplier_id=%s file=%s: %s", supplier_id, name, exc)
            failed.append({"doc_name": name, "error": str(exc)})

    return uploaded, failed
