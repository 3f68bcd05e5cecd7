# SQLAlchemy remote store
from .database import async_session_scope, dispose_engine, get_async_engine, get_session_factory, init_models
from .models import Base, BehaviorLogRecord, ProgressRecord
from .remote_store import SqlRemoteStore

__all__ = [
    "Base",
    "BehaviorLogRecord",
    "ProgressRecord",
    "SqlRemoteStore",
    "async_session_scope",
    "dispose_engine",
    "get_async_engine",
    "get_session_factory",
    "init_models",
]
