"""Vault note listing for the context picker."""

from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from note_assistant.api.deps import get_workspace
from note_assistant.services.document_source import Document, DocumentNotFoundError

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentContent(BaseModel):
    document: Document
    content: str


@router.get("", response_model=List[Document])
async def list_documents(q: str = ""):
    """List vault notes, optionally filtered by a case-insensitive title match."""
    documents = await get_workspace().vault.list_documents()
    if q:
        needle = q.lower()
        documents = [d for d in documents if needle in d.title.lower()]
    return documents


@router.get("/{document_id}", response_model=DocumentContent)
async def get_document(document_id: str):
    vault = get_workspace().vault
    try:
        document = await vault.get_document(document_id)
        content = await vault.read(document_id)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return DocumentContent(document=document, content=content)
