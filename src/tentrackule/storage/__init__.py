"""Persistent storage - tracked accounts, cached standings, guild settings."""

from tentrackule.storage.database import create_engine, create_session_factory, init_models
from tentrackule.storage.repos import SqlAccountStore, StoreError, TrackedAccountDTO

__all__ = [
    "SqlAccountStore",
    "StoreError",
    "TrackedAccountDTO",
    "create_engine",
    "create_session_factory",
    "init_models",
]
