from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_PROVIDER_KEY_VARS = {
    "groq": "GROQ_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    tavily_api_key: str | None
    pinecone_api_key: str | None
    pinecone_index_name: str | None
    embedding_api_key: str | None
    embedding_base_url: str | None
    google_client_id: str | None
    google_client_secret: str | None
    google_redirect_url: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tokens: int
    temperature: float
    history_window_messages: int
    max_orchestration_cycles: int
    request_timeout_seconds: float
    max_tool_result_chars: int
    memory_db_path: str
    vector_backend: str
    embedding_model: str
    document_search_top_k: int
    web_search_max_results: int
    chunk_size: int
    chunk_overlap: int
    upload_directory: str
    max_upload_bytes: int
    expense_query_limit: int
    host: str
    port: int
    cors_origins: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    log_consumers: list | None = None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part) for part in value]


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=str(config.get("Provider", "groq")).strip().lower(),
        model=config.get("Model", "openai/gpt-oss-120b"),
        max_tokens=int(config.get("MaxTokens", 4096)),
        temperature=float(config.get("Temperature", 0)),
        history_window_messages=int(config.get("HistoryWindowMessages", 10)),
        max_orchestration_cycles=int(config.get("MaxOrchestrationCycles", 5)),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 120)),
        max_tool_result_chars=int(config.get("MaxToolResultChars", 40_000)),
        memory_db_path=str(config.get("MemoryDbPath", ".docuchat/docuchat.db")),
        vector_backend=str(config.get("VectorBackend", "pinecone")).strip().lower(),
        embedding_model=config.get("EmbeddingModel", "text-embedding-3-small"),
        document_search_top_k=int(config.get("DocumentSearchTopK", 4)),
        web_search_max_results=int(config.get("WebSearchMaxResults", 3)),
        chunk_size=int(config.get("ChunkSize", 1000)),
        chunk_overlap=int(config.get("ChunkOverlap", 200)),
        upload_directory=str(config.get("UploadDirectory", "uploads")),
        max_upload_bytes=int(config.get("MaxUploadBytes", 10 * 1024 * 1024)),
        expense_query_limit=int(config.get("ExpenseQueryLimit", 50)),
        host=str(config.get("Host", "127.0.0.1")),
        port=int(config.get("Port", 8000)),
        cors_origins=_to_list(config.get("CorsOrigins")),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    provider_env_var = _PROVIDER_KEY_VARS.get(provider_name, "GROQ_API_KEY")
    return RuntimeEnv(
        provider_api_key=os.environ.get(provider_env_var, ""),
        provider_env_var=provider_env_var,
        tavily_api_key=os.environ.get("TAVILY_API_KEY"),
        pinecone_api_key=os.environ.get("PINECONE_API_KEY"),
        pinecone_index_name=os.environ.get("PINECONE_INDEX_NAME"),
        embedding_api_key=os.environ.get("EMBEDDING_API_KEY") or os.environ.get("OPENAI_API_KEY"),
        embedding_base_url=os.environ.get("EMBEDDING_BASE_URL"),
        google_client_id=os.environ.get("GOOGLE_CLIENT_ID"),
        google_client_secret=os.environ.get("GOOGLE_CLIENT_SECRET"),
        google_redirect_url=os.environ.get("GOOGLE_REDIRECT_URL"),
    )
