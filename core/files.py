import logging
import posixpath
from pathlib import Path, PurePosixPath

from django.conf import settings
from rest_framework.exceptions import NotFound

from .database import get_collection
from .documents import MENTOR_VERIFICATIONS


logger = logging.getLogger(__name__)

UPLOADS_PREFIX = "uploads/"

MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".txt": "text/plain",
    ".zip": "application/zip",
    ".rar": "application/x-rar-compressed",
}
DEFAULT_MIME_TYPE = "application/octet-stream"


def normalize_relative_path(path: str) -> str:
    """Collapse ``..`` and separators so the result never leaves the root."""
    cleaned = str(path or "").replace("\\", "/")
    normalized = posixpath.normpath("/" + cleaned)
    relative = str(PurePosixPath(normalized).relative_to("/"))
    return "" if relative == "." else relative


def mime_type_for(filename: str) -> str:
    return MIME_TYPES.get(PurePosixPath(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def referenced_file_url(relative_path: str):
    """Return the stored ``fileUrl`` that points at ``relative_path``, if any."""
    file_urls = [f"/{relative_path}"]
    if not relative_path.startswith(UPLOADS_PREFIX):
        file_urls.append(f"/{UPLOADS_PREFIX}{relative_path}")
    verifications = get_collection(MENTOR_VERIFICATIONS)
    for file_url in file_urls:
        if verifications.find_one({"documents.fileUrl": file_url}, {"_id": 1}) is not None:
            return file_url
    return None


def allow_listed_prefix(relative_path: str):
    for prefix in settings.FILE_DOWNLOAD_ALLOWED_PREFIXES:
        if relative_path.startswith(prefix):
            return prefix
    return None


def _contained_file(root: Path, base: Path, relative_path: str):
    candidate = (root / relative_path).resolve()
    try:
        candidate.relative_to(base)
    except ValueError:
        return None
    return candidate if candidate.is_file() else None


def resolve_download(path: str) -> Path:
    """Find a downloadable file for ``path`` or raise ``NotFound``.

    A referenced file is served only from the location its ``fileUrl`` names.
    Otherwise the path must sit under an allow-listed prefix and resolve inside
    that prefix's directory of ``UPLOADS_ROOT``.
    """
    relative_path = normalize_relative_path(path)
    if not relative_path:
        raise NotFound("File path is required")

    root = Path(settings.UPLOADS_ROOT).resolve()
    file_url = referenced_file_url(relative_path)
    if file_url is not None:
        target = normalize_relative_path(file_url)
        base = root
    else:
        prefix = allow_listed_prefix(relative_path)
        if prefix is None:
            logger.warning("Refused download of unreferenced file %s", relative_path)
            raise NotFound("File not found or access denied")
        target = relative_path
        base = (root / prefix).resolve()

    found = _contained_file(root, base, target)
    if found is None:
        raise NotFound("File not found on server")
    return found
