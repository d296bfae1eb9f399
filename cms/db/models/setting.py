"""Generic key/value settings store (branding and future site settings)."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cms.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Setting(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "cms_settings"

    key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    # Opaque serialized blob; callers own the encoding.
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Setting {self.key}>"
