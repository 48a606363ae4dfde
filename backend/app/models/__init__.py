from app.models.user import User
from app.models.refresh_token import BulkRevocation, RefreshTokenPatch, RefreshTokenRecord

__all__ = [
    "User",
    "BulkRevocation",
    "RefreshTokenPatch",
    "RefreshTokenRecord",
]
