from __future__ import annotations

import base64
from dataclasses import dataclass
import logging
import re

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.agent.prompts import OCR_PROMPT, OCR_UNREADABLE_MARKER
from rspoassist.core.config import get_settings
from rspoassist.core.errors import OcrError, RspoAssistError
from rspoassist.domain.models import PolicyDocument, User
from rspoassist.persistence.repos import documents as documents_repo
from rspoassist.providers.llm.base import GenerationRequest, LLMProvider, run_generation


logger = logging.getLogger(__name__)

DOC_TYPES = ("SOP", "Policy", "Report")
DEFAULT_DOC_TYPE = "SOP"
PDF_MIME_TYPE = "application/pdf"
PDF_PREVIEW = "pdf-placeholder"
DEFAULT_SCAN_NAME = "Scanned Document"
_NAME_CHARS = 30
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")


@dataclass(frozen=True)
class ScanResult:
    name: str
    content: str
    file_preview: str | None


@dataclass(frozen=True)
class ChatAttachment:
    file_name: str
    context: str


def _bad_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_INPUT", "message": message},
    )


def check_upload_size(size: int) -> None:
    limit = get_settings().max_upload_bytes
    if size > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "code": "UPLOAD_TOO_LARGE",
                "message": f"Document too large. Please limit uploads to {limit // (1024 * 1024)}MB.",
                "max_bytes": limit,
            },
        )


def default_document_name(extracted_text: str) -> str:
    first_line = extracted_text.split("\n")[0]
    cleaned = _NON_ALNUM.sub("", first_line)[:_NAME_CHARS]
    return cleaned or DEFAULT_SCAN_NAME


def pdf_placeholder(file_name: str) -> str:
    # PDF bodies are not parsed; the placeholder tells users to upload images instead.
    return (
        f"[PDF Content Placeholder for {file_name}]\n\n"
        "(Full PDF text extraction requires direct library support in this demo. "
        "Please upload images of documents for OCR analysis.)"
    )


def is_pdf(file_name: str, mime_type: str | None) -> bool:
    return mime_type == PDF_MIME_TYPE or file_name.lower().endswith(".pdf")


async def extract_text(
    provider: LLMProvider,
    data: bytes,
    mime_type: str,
    *,
    request_id: str | None = None,
) -> str:
    settings = get_settings()
    request = GenerationRequest(
        purpose="ocr",
        prompt=OCR_PROMPT,
        model=settings.gemini_ocr_model,
        image_bytes=data,
        image_mime_type=mime_type,
        request_id=request_id,
    )
    try:
        result = await run_generation(provider, request, settings.vertex_timeout_s)
    except RspoAssistError as exc:
        logger.warning("ocr_failed request_id=%s error=%s", request_id, exc)
        raise OcrError(
            f"OCR processing failed: {exc}. Please try a smaller image or a different format."
        ) from exc
    text = (result.text or "").strip()
    if not text or OCR_UNREADABLE_MARKER in text:
        logger.info("ocr_unreadable request_id=%s mime=%s", request_id, mime_type)
        raise OcrError(
            "OCR processing failed: Document text extraction failed. Please ensure the photo is clear "
            "and contains readable text. Please try a smaller image or a different format."
        )
    return text


async def scan_file(
    provider: LLMProvider,
    *,
    file_name: str,
    mime_type: str | None,
    data: bytes,
    request_id: str | None = None,
) -> ScanResult:
    check_upload_size(len(data))
    if is_pdf(file_name, mime_type):
        name = file_name[:-4] if file_name.lower().endswith(".pdf") else file_name
        return ScanResult(name=name, content=pdf_placeholder(file_name), file_preview=PDF_PREVIEW)
    resolved_mime = mime_type or "image/jpeg"
    text = await extract_text(provider, data, resolved_mime, request_id=request_id)
    preview = f"data:{resolved_mime};base64,{base64.b64encode(data).decode('ascii')}"
    return ScanResult(name=default_document_name(text), content=text, file_preview=preview)


async def attach_for_chat(
    provider: LLMProvider,
    *,
    file_name: str,
    mime_type: str | None,
    data: bytes,
    request_id: str | None = None,
) -> ChatAttachment:
    scan = await scan_file(provider, file_name=file_name, mime_type=mime_type, data=data, request_id=request_id)
    return ChatAttachment(file_name=file_name, context=f"FILE CONTEXT ({file_name}):\n{scan.content}")


async def add_document(
    session: AsyncSession,
    user: User,
    *,
    name: str,
    content: str,
    doc_type: str = DEFAULT_DOC_TYPE,
    file_preview: str | None = None,
) -> PolicyDocument:
    if not name or not name.strip() or not content or not content.strip():
        raise _bad_request("Document name and content are required")
    if doc_type not in DOC_TYPES:
        raise _bad_request(f"Unsupported document type: {doc_type}")
    doc = await documents_repo.create_document(
        session,
        user_id=user.id,
        name=name.strip(),
        doc_type=doc_type,
        content=content,
        file_preview=file_preview,
    )
    logger.info("vault_document_added user_id=%s doc_id=%s type=%s", user.id, doc.id, doc_type)
    return doc
