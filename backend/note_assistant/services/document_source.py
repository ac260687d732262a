from abc import ABC, abstractmethod
from typing import List
from pydantic import BaseModel
from pathlib import Path

from note_assistant.core.config import get_settings


class Document(BaseModel):
    id: str
    title: str
    path: str
    size: int


class DocumentNotFoundError(KeyError):
    """Raised when a document id does not resolve to a note."""


class DocumentReader(ABC):
    @abstractmethod
    async def list_documents(self) -> List[Document]:
        """List every note available as context."""
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Document:
        """Look up note metadata. Raises DocumentNotFoundError."""
        ...

    @abstractmethod
    async def read(self, document_id: str) -> str:
        """Return the full text of a note."""
        ...


def get_document_source() -> DocumentReader:
    """Factory building the vault source from current settings."""
    from note_assistant.services.vault import VaultSource

    return VaultSource(Path(get_settings().vault_path))
