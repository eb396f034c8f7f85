"""
Exam parsing API endpoints.

Provides the upload endpoint that turns an exam document into the
sectioned JSON structure.
"""

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse

from exam_parser.errors import (
    AIExtractionError,
    DocumentDecodeError,
    DocumentTooShortError,
    EmptyDocumentError,
    UnsupportedFileTypeError,
)
from exam_parser.middleware.logging import get_request_id
from exam_parser.middleware.rate_limit import get_limiter, parse_rate_limit
from exam_parser.services.file_parser import parse_file
from exam_parser.services.file_validator import validate_upload

router = APIRouter(prefix="/api", tags=["parsing"])
limiter = get_limiter()
logger = logging.getLogger(__name__)


class ParseMode(str, Enum):
    HEURISTIC = "heuristic"
    AI = "ai"


@router.post("/parse")
@limiter.limit(parse_rate_limit)  # type: ignore[untyped-decorator]
async def parse_exam(
    request: Request,
    file: UploadFile = File(..., description="Exam document (.pdf, .docx, .doc or .txt)"),
    mode: ParseMode = Form(ParseMode.HEURISTIC, description="'heuristic' (default) or 'ai' structured extraction"),
) -> JSONResponse:
    """
    Extract questions from an uploaded exam document.

    Returns:
        200: ExamStructure JSON, with X-Question-Count and X-Processing-Method headers
        400: Empty upload
        413: File too large
        415: Unsupported file type
        422: Document could not be decoded or holds too little text
        502: AI structured extraction failed
    """
    content, file_hash, sanitized_filename = await validate_upload(file)
    extension = Path(file.filename or "").suffix.lower()
    logger.info(
        "[%s] Parsing %s (%d bytes, sha256 %s, mode %s)",
        get_request_id(request), sanitized_filename, len(content), file_hash[:12], mode.value,
    )

    temp_file_path: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(prefix="exam_parser_", delete=False, suffix=extension) as tmp:
            tmp.write(content)
            temp_file_path = tmp.name

        structure = await parse_file(temp_file_path, use_ai_extraction=mode is ParseMode.AI)

    except UnsupportedFileTypeError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    except (EmptyDocumentError, DocumentDecodeError, DocumentTooShortError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except AIExtractionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    finally:
        if temp_file_path and os.path.exists(temp_file_path):
            os.unlink(temp_file_path)

    counts = structure.counts()
    return JSONResponse(
        content=structure.to_json_dict(),
        headers={
            "X-Question-Count": str(structure.total_questions()),
            "X-Section-Counts": ",".join(f"{name}={count}" for name, count in counts.items()),
            "X-Processing-Method": mode.value,
        },
    )
