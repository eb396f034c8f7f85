"""
File validation service for exam document uploads.

Provides security checks including:
- File size limits
- Extension and MIME type validation
- Filename sanitization
- Content hash calculation (logged with each parse)
"""

import hashlib
import re
from pathlib import Path
from typing import Dict, FrozenSet, Tuple

import magic
from fastapi import HTTPException, UploadFile

from exam_parser.config import get_settings

# libmagic reports some .docx files as plain zip archives
ALLOWED_MIME_TYPES: Dict[str, FrozenSet[str]] = {
    ".pdf": frozenset({"application/pdf"}),
    ".docx": frozenset({
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/zip",
    }),
    ".doc": frozenset({"application/msword", "application/x-ole-storage", "application/CDFV2"}),
    ".txt": frozenset({"text/plain"}),
}

DEFAULT_FILENAME = "upload"
MAX_FILENAME_LENGTH = 255


async def validate_upload(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Validate an uploaded exam document and return content, hash, and sanitized filename.

    Args:
        file: FastAPI UploadFile instance from multipart/form-data

    Returns:
        Tuple of (file_content, sha256_hash, sanitized_filename)

    Raises:
        HTTPException: 400 for empty uploads, 413 for files over the size
            limit, 415 for unsupported extensions or content
    """
    original_filename = file.filename or ""
    extension = Path(original_filename).suffix.lower()
    if extension not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {extension or '(none)'}"
        )

    content = await file.read()

    if len(content) == 0:
        raise HTTPException(status_code=400, detail="File is empty")

    max_size_mb = get_settings().max_upload_size_mb
    if len(content) > max_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {max_size_mb}MB"
        )

    mime_type = magic.from_buffer(content, mime=True)
    if mime_type not in ALLOWED_MIME_TYPES[extension]:
        raise HTTPException(
            status_code=415,
            detail=f"File content does not match {extension} (detected {mime_type})"
        )

    file_hash = hashlib.sha256(content).hexdigest()

    return content, file_hash, sanitize_filename(original_filename)


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    The extension is preserved so the parser can dispatch on it.

    Security:
        - Removes directory separators and parent directory references
        - Removes null bytes
        - Limits to alphanumeric, dash, underscore, dot
    """
    filename = Path(filename).name
    filename = filename.replace("..", "").replace("/", "").replace("\\", "")
    filename = filename.replace("\0", "")
    filename = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)

    path = Path(filename)
    stem, suffix = path.stem, path.suffix.lower()
    if not stem or stem.startswith("."):
        stem = DEFAULT_FILENAME

    # Keep extension, truncate base name
    stem = stem[:MAX_FILENAME_LENGTH - len(suffix)]
    return stem + suffix
