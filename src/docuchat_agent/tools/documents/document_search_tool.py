from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from docuchat_agent.tool import SessionScopedInput, schema_for
from docuchat_agent.tools.documents.vector_index import VectorIndex

NO_DOCUMENTS = (
    "No relevant documents found in the uploaded files. The user may not have uploaded "
    "any documents yet, or the query doesn't match the document content."
)


class DocumentSearchInput(SessionScopedInput):
    query: str = Field(
        min_length=1,
        description=(
            "The search query to find relevant document chunks. Should be specific and "
            "related to what the user is asking about."
        ),
    )


class DocumentSearchTool:
    def __init__(self, index: VectorIndex, *, top_k: int = 4) -> None:
        self._index = index
        self._top_k = top_k

    @property
    def name(self) -> str:
        return "document_search"

    @property
    def description(self) -> str:
        return (
            "Search through the user's uploaded documents to find relevant information. "
            "Use this tool when the user asks questions about their uploaded files, "
            "references specific documents, or asks 'what does the document say'."
        )

    @property
    def input_model(self) -> type[BaseModel]:
        return DocumentSearchInput

    @property
    def input_schema(self) -> dict[str, Any]:
        return schema_for(DocumentSearchInput)

    @property
    def requires_session(self) -> bool:
        return True

    async def execute(self, tool_input: DocumentSearchInput) -> str:
        try:
            segments = await self._index.query(tool_input.session_id, tool_input.query, self._top_k)
        except Exception as ex:
            logger.error(f"document_search error: {ex}")
            return f"Error searching documents: {ex}"

        if not segments:
            return NO_DOCUMENTS

        context = "\n\n".join(
            f"[Document {i}]\n{segment.text}" for i, segment in enumerate(segments, 1)
        )
        return f"Found {len(segments)} relevant document chunks:\n\n{context}"
