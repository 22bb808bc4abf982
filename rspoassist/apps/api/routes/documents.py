from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from rspoassist.apps.api.deps import commit_or_raise, get_db, get_llm, require_premium
from rspoassist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from rspoassist.apps.api.response import SuccessEnvelope, get_request_id, success_response
from rspoassist.domain.models import PolicyDocument, User
from rspoassist.persistence.repos import documents as documents_repo
from rspoassist.providers.llm.base import LLMProvider
from rspoassist.services.entitlements import FEATURE_VAULT
from rspoassist.services.vault import DEFAULT_DOC_TYPE, add_document, scan_file


router = APIRouter(prefix="/documents", tags=["documents"], responses=DEFAULT_ERROR_RESPONSES)


class DocumentResponse(BaseModel):
    id: str
    name: str
    type: str
    content: str
    upload_date: str
    file_preview: str | None = None


class DocumentCreateRequest(BaseModel):
    name: str
    content: str
    type: str = DEFAULT_DOC_TYPE
    file_preview: str | None = None

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Peatland Management SOP",
                    "type": "SOP",
                    "content": "No new planting on peat of any depth. Drainage is monitored monthly.",
                }
            ]
        },
    }


class DocumentDeleted(BaseModel):
    id: str
    deleted: bool


def _to_response(doc: PolicyDocument) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        name=doc.name,
        type=doc.doc_type,
        content=doc.content,
        upload_date=doc.upload_date.isoformat(),
        file_preview=doc.file_preview,
    )


@router.get("", response_model=SuccessEnvelope[list[DocumentResponse]])
async def list_documents(
    request: Request,
    user: User = Depends(require_premium(FEATURE_VAULT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    docs = await documents_repo.list_documents(db, user.id)
    return success_response(request=request, data=[_to_response(doc) for doc in docs])


@router.post("", status_code=201, response_model=SuccessEnvelope[DocumentResponse])
async def create_document(
    request: Request,
    payload: DocumentCreateRequest,
    user: User = Depends(require_premium(FEATURE_VAULT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    doc = await add_document(
        db,
        user,
        name=payload.name,
        content=payload.content,
        doc_type=payload.type,
        file_preview=payload.file_preview,
    )
    await commit_or_raise(db, action="saving document")
    return success_response(request=request, data=_to_response(doc))


@router.post("/scan", status_code=201, response_model=SuccessEnvelope[DocumentResponse])
async def scan_document(
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(require_premium(FEATURE_VAULT)),
    db: AsyncSession = Depends(get_db),
    provider: LLMProvider = Depends(get_llm),
) -> dict:
    # Size is checked inside scan_file before any OCR call is made.
    data = await file.read()
    scan = await scan_file(
        provider,
        file_name=file.filename or "upload",
        mime_type=file.content_type,
        data=data,
        request_id=get_request_id(request),
    )
    doc = await add_document(db, user, name=scan.name, content=scan.content, file_preview=scan.file_preview)
    await commit_or_raise(db, action="saving scanned document")
    return success_response(request=request, data=_to_response(doc))


@router.get("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def get_document(
    request: Request,
    document_id: str,
    user: User = Depends(require_premium(FEATURE_VAULT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    doc = await documents_repo.get_document(db, user.id, document_id)
    if doc is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Document not found"})
    return success_response(request=request, data=_to_response(doc))


@router.delete("/{document_id}", response_model=SuccessEnvelope[DocumentDeleted])
async def delete_document(
    request: Request,
    document_id: str,
    user: User = Depends(require_premium(FEATURE_VAULT)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    deleted = await documents_repo.delete_document(db, user.id, document_id)
    if not deleted:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Document not found"})
    await commit_or_raise(db, action="deleting document")
    return success_response(request=request, data=DocumentDeleted(id=document_id, deleted=True))
