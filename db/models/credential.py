"""
db/models/credential.py

Encrypted credential descriptors referenced by crawl jobs.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin


class AuthKind:
    BASIC = "basic"
    FORM = "form"
    COOKIE = "cookie"
    HEADER = "header"
    SSO = "sso"

    ALL = (BASIC, FORM, COOKIE, HEADER, SSO)


class CrawlCredential(Base, UUIDPrimaryKeyMixin, TenantMixin, TimestampMixin):
    __tablename__ = "crawl_credentials"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    auth_kind: Mapped[str] = mapped_column(String(16), nullable=False, comment="basic, form, cookie, header, sso")
    encrypted_payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Fernet token; decrypted only inside a crawl run",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (Index("ix_crawl_credentials_tenant_domain", "tenant_id", "domain"),)

    def __repr__(self) -> str:
        # Never include the payload.
        return f"<CrawlCredential id={self.id} domain={self.domain!r} kind={self.auth_kind}>"
