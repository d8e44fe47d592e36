from __future__ import annotations

from pymongo.client_session import ClientSession
from pymongo.database import Database

from .documents.audit_log_document import AuditLogDocument
from .interfaces import AuditLogRepositoryInterface
from ..models.audit import AuditLog


class AuditLogRepository(AuditLogRepositoryInterface):
    """audit_logs 컬렉션에 대한 MongoDB 접근 레이어 (append-only)."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["audit_logs"]

    def create(
        self, entry: AuditLog, session: ClientSession | None = None
    ) -> AuditLog:
        record = AuditLogDocument.from_domain(entry).to_mongo_record()
        result = self._col.insert_one(record, session=session)
        return entry.model_copy(update={"id": str(result.inserted_id)})

    def list(self, page: int, page_size: int) -> tuple[list[AuditLog], int]:
        if page <= 0:
            page = 1
        if page_size <= 0 or page_size > 100:
            page_size = 20

        skip = (page - 1) * page_size

        total = self._col.count_documents({})
        cursor = self._col.find(
            {},
            sort=[("created_at", -1), ("_id", -1)],
            skip=skip,
            limit=page_size,
        )
        items = [AuditLogDocument.model_validate(raw).to_domain() for raw in cursor]
        return items, total
