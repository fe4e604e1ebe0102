from __future__ import annotations

import asyncio
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import openai
from loguru import logger
from pinecone import Pinecone

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_TEXT_KEY = "text"


@dataclass(frozen=True)
class DocumentSegment:
    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    score: float = 0.0


@runtime_checkable
class VectorIndex(Protocol):
    async def upsert(self, namespace: str, segments: list[DocumentSegment]) -> int:
        """Store segments under ``namespace``. Returns how many were stored."""
        ...

    async def query(self, namespace: str, text: str, k: int) -> list[DocumentSegment]:
        """Top ``k`` segments of ``namespace`` ranked by similarity to ``text``."""
        ...

    async def delete_source(self, namespace: str, source: str) -> int:
        """Remove every segment of ``namespace`` that came from file ``source``."""
        ...


def _require_namespace(namespace: str) -> None:
    if not namespace:
        raise ValueError("namespace is required")


class InMemoryVectorIndex:
    """Bag-of-words cosine index for local runs without Pinecone."""

    def __init__(self) -> None:
        self._namespaces: dict[str, dict[str, tuple[DocumentSegment, Counter]]] = {}

    async def upsert(self, namespace: str, segments: list[DocumentSegment]) -> int:
        _require_namespace(namespace)
        bucket = self._namespaces.setdefault(namespace, {})
        for segment in segments:
            bucket[segment.id] = (segment, _term_counts(segment.text))
        return len(segments)

    async def delete_source(self, namespace: str, source: str) -> int:
        _require_namespace(namespace)
        bucket = self._namespaces.get(namespace, {})
        stale = [sid for sid, (segment, _) in bucket.items() if segment.metadata.get("source") == source]
        for sid in stale:
            del bucket[sid]
        return len(stale)

    async def query(self, namespace: str, text: str, k: int) -> list[DocumentSegment]:
        _require_namespace(namespace)
        bucket = self._namespaces.get(namespace, {})
        query_terms = _term_counts(text)
        scored = []
        for segment, terms in bucket.values():
            score = _cosine(query_terms, terms)
            if score > 0:
                scored.append((score, segment))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            DocumentSegment(id=s.id, text=s.text, metadata=s.metadata, score=score)
            for score, s in scored[:k]
        ]


def _term_counts(text: str) -> Counter:
    return Counter(_TOKEN_RE.findall(text.lower()))


def _cosine(a: Counter, b: Counter) -> float:
    if not a or not b:
        return 0.0
    dot = sum(count * b.get(term, 0) for term, count in a.items())
    norm = math.sqrt(sum(v * v for v in a.values())) * math.sqrt(sum(v * v for v in b.values()))
    return dot / norm if norm else 0.0


class OpenAIEmbedder:
    """Embeddings from any OpenAI-compatible embeddings endpoint."""

    def __init__(self, api_key: str, *, model: str, base_url: str | None = None):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        response = await self._client.embeddings.create(model=self._model, input=texts)
        return [item.embedding for item in response.data]


class PineconeVectorIndex:
    """Pinecone index; every call is scoped to a Pinecone namespace."""

    _BATCH_SIZE = 100

    def __init__(self, api_key: str, index_name: str, embedder: OpenAIEmbedder):
        self._index = Pinecone(api_key=api_key).Index(index_name)
        self._embedder = embedder

    async def upsert(self, namespace: str, segments: list[DocumentSegment]) -> int:
        _require_namespace(namespace)
        stored = 0
        for start in range(0, len(segments), self._BATCH_SIZE):
            batch = segments[start : start + self._BATCH_SIZE]
            vectors = await self._embedder.embed([s.text for s in batch])
            records = [
                {
                    "id": segment.id,
                    "values": values,
                    "metadata": {**_flat_metadata(segment.metadata), _TEXT_KEY: segment.text},
                }
                for segment, values in zip(batch, vectors)
            ]
            await asyncio.to_thread(self._index.upsert, vectors=records, namespace=namespace)
            stored += len(records)
        logger.info(f"Pinecone: upserted {stored} vector(s) into namespace {namespace}")
        return stored

    async def delete_source(self, namespace: str, source: str) -> int:
        _require_namespace(namespace)
        ids = await asyncio.to_thread(self._list_ids, namespace, f"{source}-chunk-")
        for start in range(0, len(ids), self._BATCH_SIZE):
            await asyncio.to_thread(
                self._index.delete, ids=ids[start : start + self._BATCH_SIZE], namespace=namespace
            )
        if ids:
            logger.info(f"Pinecone: deleted {len(ids)} vector(s) of {source} from namespace {namespace}")
        return len(ids)

    def _list_ids(self, namespace: str, prefix: str) -> list[str]:
        ids: list[str] = []
        for page in self._index.list(prefix=prefix, namespace=namespace):
            ids.extend(page)
        return ids

    async def query(self, namespace: str, text: str, k: int) -> list[DocumentSegment]:
        _require_namespace(namespace)
        [vector] = await self._embedder.embed([text])
        response = await asyncio.to_thread(
            self._index.query,
            vector=vector,
            top_k=k,
            namespace=namespace,
            include_metadata=True,
        )
        segments = []
        for match in response.matches:
            metadata = dict(match.metadata or {})
            segments.append(
                DocumentSegment(
                    id=match.id,
                    text=str(metadata.pop(_TEXT_KEY, "")),
                    metadata=metadata,
                    score=float(match.score or 0.0),
                )
            )
        return segments


def _flat_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    # Pinecone metadata values must be scalars or lists of strings.
    flat: dict[str, Any] = {}
    for key, value in metadata.items():
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif value is not None:
            flat[key] = str(value)
    return flat
