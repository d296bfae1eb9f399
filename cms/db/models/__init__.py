"""Database model registry. Import all models here so metadata sees every table."""

from cms.db.models.content import ContentItem, ContentStatus, ContentTranslation, ContentType
from cms.db.models.media import MediaItem
from cms.db.models.setting import Setting
from cms.db.models.user import Role, User

__all__ = [
    "ContentItem",
    "ContentStatus",
    "ContentTranslation",
    "ContentType",
    "MediaItem",
    "Role",
    "Setting",
    "User",
]
