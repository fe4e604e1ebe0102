from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass, field
from pathlib import Path

from langchain_text_splitters import RecursiveCharacterTextSplitter
from loguru import logger
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from docuchat_agent.errors import IngestionError
from docuchat_agent.tools.documents.vector_index import DocumentSegment, VectorIndex

PDF_SUFFIXES = {".pdf"}
TEXT_SUFFIXES = {".txt", ".md"}
PREVIEW_CHUNKS = 5


@dataclass
class IngestionResult:
    file_name: str
    total_pages: int
    total_chunks: int
    previews: list[dict] = field(default_factory=list)

    def to_response(self) -> dict:
        return {
            "success": True,
            "fileName": self.file_name,
            "totalPages": self.total_pages,
            "totalChunks": self.total_chunks,
            "chunks": self.previews,
        }


class DocumentIngestor:
    """Splits an uploaded file into segments and stores them under the session's namespace."""

    def __init__(
        self,
        index: VectorIndex,
        *,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        upload_directory: str | None = "uploads",
        max_upload_bytes: int = 10 * 1024 * 1024,
    ):
        self._index = index
        self._splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        self._upload_directory = Path(upload_directory) if upload_directory else None
        self._max_upload_bytes = max_upload_bytes

    async def ingest(self, session_id: str, file_name: str, data: bytes) -> IngestionResult:
        name = Path(file_name or "").name
        if not name:
            raise IngestionError("No file provided")
        if not data:
            raise IngestionError(f"File {name} is empty")
        if len(data) > self._max_upload_bytes:
            raise IngestionError(f"File {name} exceeds the {self._max_upload_bytes:,} byte upload limit")

        suffix = Path(name).suffix.lower()
        if suffix in PDF_SUFFIXES:
            pages = await asyncio.to_thread(_read_pdf_pages, name, data)
        elif suffix in TEXT_SUFFIXES:
            pages = [data.decode("utf-8", errors="replace")]
        else:
            raise IngestionError(f"Unsupported file type: {suffix or name}. Upload a PDF or text file.")

        if self._upload_directory is not None:
            await asyncio.to_thread(self._save_copy, session_id, name, data)

        segments = self._split(session_id, name, pages)
        if not segments:
            raise IngestionError(f"No text could be extracted from {name}")

        replaced = await self._index.delete_source(session_id, name)
        if replaced:
            logger.info(f"Replacing {replaced} chunk(s) of an earlier upload of {name} for session {session_id}")
        stored = await self._index.upsert(session_id, segments)
        logger.info(f"Ingested {name} for session {session_id}: {len(pages)} page(s), {stored} chunk(s)")

        return IngestionResult(
            file_name=name,
            total_pages=len(pages),
            total_chunks=len(segments),
            previews=[
                {"id": s.id, "content": s.text, "metadata": s.metadata}
                for s in segments[:PREVIEW_CHUNKS]
            ],
        )

    def _split(self, session_id: str, name: str, pages: list[str]) -> list[DocumentSegment]:
        segments: list[DocumentSegment] = []
        for page_number, text in enumerate(pages, 1):
            for chunk in self._splitter.split_text(text):
                if not chunk.strip():
                    continue
                segments.append(
                    DocumentSegment(
                        id=f"{name}-chunk-{len(segments)}",
                        text=chunk,
                        metadata={"source": name, "page": page_number, "sessionId": session_id},
                    )
                )
        return segments

    def _save_copy(self, session_id: str, name: str, data: bytes) -> None:
        root = self._upload_directory.resolve()
        target_dir = (root / session_id).resolve()
        if target_dir.parent != root:
            raise IngestionError(f"Invalid session id for upload: {session_id!r}")
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / name).write_bytes(data)


def _read_pdf_pages(name: str, data: bytes) -> list[str]:
    try:
        reader = PdfReader(io.BytesIO(data))
        return [page.extract_text() or "" for page in reader.pages]
    except (PyPdfError, ValueError) as ex:
        raise IngestionError(f"Failed to read PDF {name}: {ex}") from ex
