from docuchat_agent.memory.events import EventEmitter
from docuchat_agent.memory.session_store import SessionStore
from docuchat_agent.memory.store import MemoryStore

__all__ = [
    "EventEmitter",
    "MemoryStore",
    "SessionStore",
]
