from .session_memory import InMemorySessionStore, SessionStore

__all__ = ["InMemorySessionStore", "SessionStore"]
