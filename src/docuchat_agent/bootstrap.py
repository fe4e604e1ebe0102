from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from docuchat_agent.agent import Agent
from docuchat_agent.agent_config import AgentConfig
from docuchat_agent.app_config import AppConfig, RuntimeEnv
from docuchat_agent.ingestion import DocumentIngestor
from docuchat_agent.logging_config import setup_logging
from docuchat_agent.memory import EventEmitter, MemoryStore, SessionStore
from docuchat_agent.provider import create_provider
from docuchat_agent.tool_registry import build_registry
from docuchat_agent.tools.calendar.token_store import TokenStore
from docuchat_agent.tools.documents.vector_index import (
    InMemoryVectorIndex,
    OpenAIEmbedder,
    PineconeVectorIndex,
    VectorIndex,
)
from docuchat_agent.tools.expenses.expense_store import ExpenseStore


@dataclass
class AppRuntime:
    agent: Agent
    ingestor: DocumentIngestor
    token_store: TokenStore | None = None
    memory_store: MemoryStore | None = None
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_redirect_url: str | None = None
    cors_origins: list[str] = field(default_factory=list)
    log_descriptions: list[str] = field(default_factory=list)

    @property
    def calendar_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret and self.token_store is not None)


def create_vector_index(app: AppConfig, env: RuntimeEnv) -> VectorIndex:
    if app.vector_backend == "pinecone":
        if env.pinecone_api_key and env.pinecone_index_name and env.embedding_api_key:
            embedder = OpenAIEmbedder(
                env.embedding_api_key,
                model=app.embedding_model,
                base_url=env.embedding_base_url,
            )
            return PineconeVectorIndex(env.pinecone_api_key, env.pinecone_index_name, embedder)
        logger.warning(
            "VectorBackend is 'pinecone' but PINECONE_API_KEY, PINECONE_INDEX_NAME or an "
            "embedding API key is missing; using the in-memory index"
        )
    elif app.vector_backend != "memory":
        raise ValueError(f"Unknown vector backend: {app.vector_backend!r}. Supported: 'pinecone', 'memory'")
    return InMemoryVectorIndex()


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers)

    if not env.provider_api_key:
        raise ValueError(f"{env.provider_env_var} environment variable is required.")

    db_path = Path(app.memory_db_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    memory_store = MemoryStore(str(db_path))
    event_emitter = EventEmitter(memory_store)
    session_store = SessionStore(memory_store, event_emitter)
    token_store = TokenStore(memory_store)
    expense_store = ExpenseStore(memory_store)

    vector_index = create_vector_index(app, env)

    registry = build_registry(
        vector_index=vector_index,
        document_search_top_k=app.document_search_top_k,
        tavily_api_key=env.tavily_api_key,
        web_search_max_results=app.web_search_max_results,
        token_store=token_store,
        google_client_id=env.google_client_id,
        google_client_secret=env.google_client_secret,
        expense_store=expense_store,
        expense_query_limit=app.expense_query_limit,
    )

    provider = create_provider(
        app.provider_name,
        env.provider_api_key,
        model=app.model,
        max_tokens=app.max_tokens,
        temperature=app.temperature,
    )

    agent = Agent(
        AgentConfig(
            provider=provider,
            registry=registry,
            session_store=session_store,
            event_emitter=event_emitter,
            history_window_messages=app.history_window_messages,
            max_cycles=app.max_orchestration_cycles,
            max_tool_result_chars=app.max_tool_result_chars,
            request_timeout_seconds=app.request_timeout_seconds,
        )
    )

    ingestor = DocumentIngestor(
        vector_index,
        chunk_size=app.chunk_size,
        chunk_overlap=app.chunk_overlap,
        upload_directory=app.upload_directory,
        max_upload_bytes=app.max_upload_bytes,
    )

    return AppRuntime(
        agent=agent,
        ingestor=ingestor,
        token_store=token_store,
        memory_store=memory_store,
        google_client_id=env.google_client_id,
        google_client_secret=env.google_client_secret,
        google_redirect_url=env.google_redirect_url,
        cors_origins=app.cors_origins,
        log_descriptions=log_descriptions,
    )
