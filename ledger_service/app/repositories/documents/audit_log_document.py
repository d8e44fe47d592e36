from __future__ import annotations

from typing import Any

from pydantic import Field

from common.mongo.types import (
    BaseDocument,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.audit import AuditLog


class AuditLogDocument(BaseDocument):
    """MongoDB audit_logs 컬렉션 도큐먼트 모델."""

    actor_id: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, entry: AuditLog) -> "AuditLogDocument":
        return cls.model_validate(build_document_data_from_domain(entry))

    def to_domain(self) -> AuditLog:
        return AuditLog(
            id=from_object_id(self.id),
            actor_id=self.actor_id,
            action=self.action,
            details=dict(self.details),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
