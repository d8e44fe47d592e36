"""카탈로그 관리 서비스 (themes, store_items).

관리자만 항목을 만들고 고치고 비활성화한다. 판매 기록과 소유권이 항목 id 를 참조하므로
삭제는 하지 않고 is_active=False 로 판매만 멈춘다. 모든 쓰기는 감사 로그와 같은 작업 단위다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import Depends
from pymongo.client_session import ClientSession

from ..dependencies import (
    get_audit_log_repository,
    get_store_item_repository,
    get_theme_repository,
    get_unit_of_work,
)
from ..exceptions import CatalogItemNotFound, CatalogNameTaken, PolicyViolation
from ..models.audit import AuditAction, AuditLog
from ..models.catalog import StoreItem, Theme
from ..models.principal import Principal
from ..repositories.interfaces import (
    AuditLogRepositoryInterface,
    StoreItemRepositoryInterface,
    ThemeRepositoryInterface,
    UnitOfWorkInterface,
)
from .admin_service import require_admin
from .wallet_service import ensure_positive_amount


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise PolicyViolation("catalog name must not be blank")
    return cleaned


def _changes(
    name: str | None = None,
    price: int | None = None,
    is_active: bool | None = None,
    category: str | None = None,
) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if name is not None:
        fields["name"] = _clean_name(name)
    if price is not None:
        fields["price"] = ensure_positive_amount(price)
    if is_active is not None:
        fields["is_active"] = is_active
    if category is not None:
        fields["category"] = _clean_name(category)
    if not fields:
        raise PolicyViolation("nothing to update")
    return fields


class CatalogService:
    def __init__(
        self,
        theme_repo: ThemeRepositoryInterface,
        store_item_repo: StoreItemRepositoryInterface,
        audit_repo: AuditLogRepositoryInterface,
        uow: UnitOfWorkInterface,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._theme_repo = theme_repo
        self._store_item_repo = store_item_repo
        self._audit_repo = audit_repo
        self._uow = uow
        self._clock = clock

    def _audit(
        self,
        principal: Principal,
        action: str,
        details: dict,
        session: ClientSession | None,
    ) -> None:
        now = self._clock()
        self._audit_repo.create(
            AuditLog(
                actor_id=principal.user_id,
                action=action,
                details=details,
                created_at=now,
                updated_at=now,
            ),
            session=session,
        )

    # 테마 -----------------------------------------------------------------
    def create_theme(self, principal: Principal, name: str, price: int) -> Theme:
        require_admin(principal)
        name = _clean_name(name)
        ensure_positive_amount(price)

        def _create(session: ClientSession | None) -> Theme:
            # 추천 보너스 테마는 이름으로 찾으므로 이름이 겹치면 안 된다.
            if self._theme_repo.find_by_name(name, session=session) is not None:
                raise CatalogNameTaken(f"theme name {name!r} is already used")
            theme = self._theme_repo.create(name, price, self._clock(), session=session)
            self._audit(
                principal,
                AuditAction.THEME_CREATED,
                {"theme_id": theme.id, "name": name, "price": price},
                session,
            )
            return theme

        theme = self._uow.run(_create)
        logger.info(
            "theme created id=%s name=%s price=%d",
            theme.id,
            theme.name,
            theme.price,
            extra={"user_id": principal.user_id},
        )
        return theme

    def update_theme(
        self,
        principal: Principal,
        theme_id: str,
        name: str | None = None,
        price: int | None = None,
        is_active: bool | None = None,
    ) -> Theme:
        require_admin(principal)
        fields = _changes(name=name, price=price, is_active=is_active)
        return self._update_theme(principal, theme_id, fields, AuditAction.THEME_UPDATED)

    def deactivate_theme(self, principal: Principal, theme_id: str) -> Theme:
        """판매 중지. 이미 소유한 유저의 소유권과 판매 기록은 그대로 남는다."""
        require_admin(principal)
        return self._update_theme(
            principal, theme_id, {"is_active": False}, AuditAction.THEME_DEACTIVATED
        )

    def _update_theme(
        self, principal: Principal, theme_id: str, fields: dict[str, Any], action: str
    ) -> Theme:
        def _update(session: ClientSession | None) -> Theme:
            if "name" in fields:
                existing = self._theme_repo.find_by_name(fields["name"], session=session)
                if existing is not None and existing.id != theme_id:
                    raise CatalogNameTaken(f"theme name {fields['name']!r} is already used")
            theme = self._theme_repo.update(theme_id, fields, self._clock(), session=session)
            if theme is None:
                raise CatalogItemNotFound(f"theme {theme_id} not found")
            self._audit(principal, action, {"theme_id": theme_id, **fields}, session)
            return theme

        theme = self._uow.run(_update)
        logger.info(
            "theme %s id=%s fields=%s",
            action,
            theme_id,
            sorted(fields),
            extra={"user_id": principal.user_id},
        )
        return theme

    # 스토어 아이템 ----------------------------------------------------------
    def create_store_item(
        self, principal: Principal, name: str, price: int, category: str = "general"
    ) -> StoreItem:
        require_admin(principal)
        name = _clean_name(name)
        category = _clean_name(category)
        ensure_positive_amount(price)

        def _create(session: ClientSession | None) -> StoreItem:
            item = self._store_item_repo.create(
                name, price, category, self._clock(), session=session
            )
            self._audit(
                principal,
                AuditAction.STORE_ITEM_CREATED,
                {"item_id": item.id, "name": name, "price": price, "category": category},
                session,
            )
            return item

        item = self._uow.run(_create)
        logger.info(
            "store item created id=%s name=%s price=%d category=%s",
            item.id,
            item.name,
            item.price,
            item.category,
            extra={"user_id": principal.user_id},
        )
        return item

    def update_store_item(
        self,
        principal: Principal,
        item_id: str,
        name: str | None = None,
        price: int | None = None,
        category: str | None = None,
        is_active: bool | None = None,
    ) -> StoreItem:
        require_admin(principal)
        fields = _changes(name=name, price=price, is_active=is_active, category=category)
        return self._update_store_item(
            principal, item_id, fields, AuditAction.STORE_ITEM_UPDATED
        )

    def deactivate_store_item(self, principal: Principal, item_id: str) -> StoreItem:
        require_admin(principal)
        return self._update_store_item(
            principal, item_id, {"is_active": False}, AuditAction.STORE_ITEM_DEACTIVATED
        )

    def _update_store_item(
        self, principal: Principal, item_id: str, fields: dict[str, Any], action: str
    ) -> StoreItem:
        def _update(session: ClientSession | None) -> StoreItem:
            item = self._store_item_repo.update(item_id, fields, self._clock(), session=session)
            if item is None:
                raise CatalogItemNotFound(f"store item {item_id} not found")
            self._audit(principal, action, {"item_id": item_id, **fields}, session)
            return item

        item = self._uow.run(_update)
        logger.info(
            "store item %s id=%s fields=%s",
            action,
            item_id,
            sorted(fields),
            extra={"user_id": principal.user_id},
        )
        return item


def get_catalog_service(
    theme_repo: ThemeRepositoryInterface = Depends(get_theme_repository),
    store_item_repo: StoreItemRepositoryInterface = Depends(get_store_item_repository),
    audit_repo: AuditLogRepositoryInterface = Depends(get_audit_log_repository),
    uow: UnitOfWorkInterface = Depends(get_unit_of_work),
) -> CatalogService:
    """FastAPI DI용 CatalogService 팩토리."""

    return CatalogService(
        theme_repo=theme_repo,
        store_item_repo=store_item_repo,
        audit_repo=audit_repo,
        uow=uow,
    )
