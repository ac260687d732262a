from pathlib import Path
from typing import List
import hashlib

from note_assistant.services.document_source import (
    Document,
    DocumentNotFoundError,
    DocumentReader,
)

NOTE_SUFFIX = ".md"


class VaultSource(DocumentReader):
    """Document source over a directory of markdown notes."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path).resolve()
        if not self.base_path.exists():
            self.base_path.mkdir(parents=True, exist_ok=True)

    def _path_to_id(self, path: Path) -> str:
        """Convert a path to a stable ID."""
        relative = path.relative_to(self.base_path)
        return hashlib.md5(relative.as_posix().encode()).hexdigest()

    def _id_to_path(self, document_id: str) -> Path:
        """Find a note path by searching for a matching ID."""
        for path in self._iter_notes():
            if self._path_to_id(path) == document_id:
                return self._validate_path_within_base(path)
        raise DocumentNotFoundError(f"No note found for ID: {document_id}")

    def _validate_path_within_base(self, path: Path) -> Path:
        """Validate that a path is within the vault to prevent traversal attacks."""
        resolved = path.resolve()
        if not resolved.is_relative_to(self.base_path):
            raise ValueError("Path traversal detected")
        return resolved

    def _iter_notes(self):
        for path in sorted(self.base_path.rglob(f"*{NOTE_SUFFIX}")):
            if path.is_file():
                yield path

    def _to_document(self, path: Path) -> Document:
        return Document(
            id=self._path_to_id(path),
            title=path.stem,
            path=path.relative_to(self.base_path).as_posix(),
            size=path.stat().st_size,
        )

    def path_for(self, document_id: str) -> Path:
        return self._id_to_path(document_id)

    async def list_documents(self) -> List[Document]:
        documents = [self._to_document(path) for path in self._iter_notes()]
        return sorted(documents, key=lambda d: d.title.lower())

    async def get_document(self, document_id: str) -> Document:
        return self._to_document(self._id_to_path(document_id))

    async def read(self, document_id: str) -> str:
        return self._id_to_path(document_id).read_text(encoding="utf-8")
