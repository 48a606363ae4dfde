from app.db.base import Base
from app.db.dynamodb import close_dynamodb, get_dynamodb_client, init_dynamodb
from app.db.session import async_session_maker, engine, get_db, init_db

__all__ = [
    "Base",
    "async_session_maker",
    "close_dynamodb",
    "engine",
    "get_db",
    "get_dynamodb_client",
    "init_db",
    "init_dynamodb",
]
