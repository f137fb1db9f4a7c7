"""
Media library API: uploads stored on disk under config.upload_dir.

    <upload_dir>/images/      image/* uploads
    <upload_dir>/documents/   everything else that is allowed

Stored names are random, "<hex>_<unix time>.<ext>", so client filenames
never reach the filesystem.
"""

from datetime import datetime
from http import HTTPStatus
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging
import math
import mimetypes
import re
import secrets
import time

from ...db.query import now_timestamp
from ...http.controller import Controller, ValidationError
from ...http.request import Request, UploadedFile
from ...http.response import Response


logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)

SUBDIRECTORIES = ("images", "documents")

LIST_TYPES = {
    "images": ("images",),
    "documents": ("documents",),
}


def subdirectory_for(mime_type: str) -> str:
    return "images" if mime_type.startswith("image/") else "documents"


def unique_filename(extension: str) -> str:
    extension = re.sub(r"[^a-z0-9]", "", extension.lower())
    stem = f"{secrets.token_hex(8)}_{int(time.time())}"
    return f"{stem}.{extension}" if extension else stem


class MediaController(Controller):
    def boot(self) -> None:
        config = self.config
        self.root = Path(config.upload_dir if config is not None else "storage/uploads")
        self.max_bytes = config.upload_max_bytes if config is not None else 10 * 1024 * 1024
        for subdir in SUBDIRECTORIES:
            (self.root / subdir).mkdir(parents=True, exist_ok=True)

    # =========================================================================
    # UPLOADS
    # =========================================================================

    def upload(self, request: Request) -> Response:
        upload = request.file("file")
        if upload is None:
            return self.error("No valid file uploaded")

        try:
            self.check(upload)
        except ValidationError as e:
            return self.error(e.message)

        try:
            info = self.store(upload)
        except OSError as e:
            logger.error(f"Could not save upload {upload.filename!r}: {e}")
            return self.error("Failed to save file", HTTPStatus.INTERNAL_SERVER_ERROR)

        return self.success(info)

    def upload_multiple(self, request: Request) -> Response:
        uploads = request.files("files")
        if not uploads:
            return self.error("No files uploaded")

        stored: List[Dict[str, Any]] = []
        errors: List[str] = []
        for upload in uploads:
            try:
                self.check(upload)
                stored.append(self.store(upload))
            except ValidationError as e:
                errors.append(f"File {upload.filename}: {e.message}")
            except OSError as e:
                logger.error(f"Could not save upload {upload.filename!r}: {e}")
                errors.append(f"File {upload.filename}: Failed to save")

        return self.json({
            "success": bool(stored),
            "error": ", ".join(errors) if errors else None,
            "data": {
                "uploaded_files": stored,
                "uploaded_count": len(stored),
                "failed_count": len(errors),
            },
        })

    def check(self, upload: UploadedFile) -> None:
        if upload.size > self.max_bytes:
            raise ValidationError(f"File size exceeds limit of {self.max_bytes / 1024 / 1024:g}MB")
        if upload.content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError("File type not allowed")

    def store(self, upload: UploadedFile) -> Dict[str, Any]:
        subdir = subdirectory_for(upload.content_type)
        filename = unique_filename(upload.extension)
        upload.save(self.root / subdir / filename)
        logger.info(f"Stored upload {upload.filename!r} as {subdir}/{filename} ({upload.size} bytes)")

        path = f"uploads/{subdir}/{filename}"
        return {
            "filename": filename,
            "original_name": upload.filename,
            "mime_type": upload.content_type,
            "size": upload.size,
            "path": path,
            "url": "/" + path,
            "uploaded_at": now_timestamp(),
        }

    # =========================================================================
    # LIBRARY
    # =========================================================================

    def list(self, request: Request) -> Response:
        """Newest first, paginated: ?type=all|images|documents&page=1&limit=20."""
        subdirs = LIST_TYPES.get(self.query("type", "all"), SUBDIRECTORIES)
        page = self.clamp_int(self.query("page"), 1, 1, 2 ** 31)
        limit = self.clamp_int(self.query("limit"), 20, 5, 50)

        entries: List[Tuple[float, Dict[str, Any]]] = []
        for subdir in subdirs:
            for path in (self.root / subdir).iterdir():
                if path.is_file():
                    entries.append(self.describe(subdir, path))
        entries.sort(key=lambda entry: entry[0], reverse=True)

        total = len(entries)
        offset = (page - 1) * limit
        return self.success({
            "files": [info for _, info in entries[offset:offset + limit]],
            "pagination": {
                "current_page": page,
                "per_page": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        })

    @staticmethod
    def describe(subdir: str, path: Path) -> Tuple[float, Dict[str, Any]]:
        stat = path.stat()
        relative = f"uploads/{subdir}/{path.name}"
        mime_type: Optional[str] = mimetypes.guess_type(path.name)[0]
        return stat.st_mtime, {
            "filename": path.name,
            "path": relative,
            "url": "/" + relative,
            "size": stat.st_size,
            "mime_type": mime_type or "application/octet-stream",
            "modified_at": datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S"),
        }

    def delete(self, request: Request, filename: str) -> Response:
        subdir = self.query("subdir", "images")
        if subdir not in SUBDIRECTORIES:
            return self.error("Invalid directory")

        path = self.root / subdir / filename
        if not path.is_file():
            return self.error("File not found", HTTPStatus.NOT_FOUND)

        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Could not delete {subdir}/{filename}: {e}")
            return self.error("Failed to delete file", HTTPStatus.INTERNAL_SERVER_ERROR)

        logger.info(f"Deleted upload {subdir}/{filename}")
        return self.success()
