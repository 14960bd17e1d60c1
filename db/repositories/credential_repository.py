"""
Repository for encrypted crawl credentials.

Payloads are stored and returned as ciphertext only.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.credential import CrawlCredential
from db.repositories.errors import CredentialInactiveError, CredentialNotFoundError


class CredentialRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_credential(
        self,
        *,
        tenant_id: str,
        name: str,
        domain: str,
        auth_kind: str,
        encrypted_payload: str,
        created_by: str | None = None,
    ) -> CrawlCredential:
        credential = CrawlCredential(
            tenant_id=tenant_id,
            name=name,
            domain=domain,
            auth_kind=auth_kind,
            encrypted_payload=encrypted_payload,
            is_active=True,
            created_by=created_by,
        )
        self._session.add(credential)
        self._session.flush()
        self._session.refresh(credential)
        return credential

    def get_credential(self, credential_id: uuid.UUID) -> CrawlCredential | None:
        return self._session.get(CrawlCredential, credential_id)

    def require_active(self, *, tenant_id: str, credential_id: uuid.UUID) -> CrawlCredential:
        credential = self.get_credential(credential_id)
        if credential is None or credential.tenant_id != tenant_id:
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")
        if not credential.is_active:
            raise CredentialInactiveError(f"Credential is inactive: {credential_id}")
        return credential

    def list_credentials(self, *, tenant_id: str) -> list[CrawlCredential]:
        stmt = (
            select(CrawlCredential)
            .where(CrawlCredential.tenant_id == tenant_id)
            .order_by(CrawlCredential.domain, CrawlCredential.name)
        )
        return list(self._session.scalars(stmt).all())

    def deactivate(self, *, credential_id: uuid.UUID) -> CrawlCredential | None:
        credential = self.get_credential(credential_id)
        if credential is None:
            return None
        credential.is_active = False
        return credential

    def delete_credential(self, *, credential_id: uuid.UUID) -> bool:
        credential = self.get_credential(credential_id)
        if credential is None:
            return False
        self._session.delete(credential)
        self._session.flush()
        return True
