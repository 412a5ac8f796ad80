"""
Expedition Service - carrier partner registry

Expeditions are never deleted: shipments keep pointing at the carrier that
took them. Retiring one sets ``is_active`` to False, which hides it from the
public list and refuses it at assignment.
"""
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.core.exceptions import AppException, ErrorCode, NotFoundException, ValidationException
from parcelhub.core.logging import get_logger
from parcelhub.db.models.expedition import Expedition
from parcelhub.db.unit_of_work import atomic

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("name", "code", "api_url", "is_active")


class ExpeditionService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_expeditions(self, active_only: bool = True) -> list[Expedition]:
        query = select(Expedition).order_by(Expedition.name)
        if active_only:
            query = query.where(Expedition.is_active.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_expedition(self, expedition_id: int) -> Expedition:
        result = await self.db.execute(
            select(Expedition)
            .where(Expedition.id == expedition_id)
            .execution_options(populate_existing=True)
        )
        expedition = result.scalar_one_or_none()
        if expedition is None:
            raise NotFoundException("Expedition", expedition_id)
        return expedition

    async def _ensure_code_free(self, code: str, expedition_id: Optional[int] = None) -> None:
        query = select(Expedition.id).where(Expedition.code == code)
        if expedition_id is not None:
            query = query.where(Expedition.id != expedition_id)
        existing = await self.db.execute(query)
        if existing.scalar_one_or_none() is not None:
            raise AppException(
                message=f"Expedition code already registered: {code}",
                error_code=ErrorCode.ALREADY_EXISTS,
                status_code=409,
                details={"code": code},
            )

    async def create_expedition(
        self,
        name: str,
        code: str,
        api_url: Optional[str] = None,
        is_active: bool = True,
    ) -> Expedition:
        code = code.strip().upper()
        await self._ensure_code_free(code)

        expedition = Expedition(name=name.strip(), code=code, api_url=api_url, is_active=is_active)
        async with atomic(self.db, "create_expedition"):
            self.db.add(expedition)

        logger.info("Expedition registered", extra_data={"expedition_id": expedition.id, "code": code})
        return expedition

    async def update_expedition(self, expedition_id: int, changes: dict[str, Any]) -> Expedition:
        """Apply the non-None fields of ``changes``; a new code must stay unique"""
        expedition = await self.get_expedition(expedition_id)
        updates = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}

        for field in ("name", "code"):
            if field in updates:
                if not str(updates[field]).strip():
                    raise ValidationException(f"{field} must not be blank", field=field)
                updates[field] = str(updates[field]).strip()
        if "code" in updates:
            updates["code"] = updates["code"].upper()
            await self._ensure_code_free(updates["code"], expedition_id)

        async with atomic(self.db, "update_expedition"):
            for field, value in updates.items():
                setattr(expedition, field, value)

        logger.info(
            "Expedition updated",
            extra_data={"expedition_id": expedition_id, "fields": sorted(updates)}
        )
        return expedition

    async def deactivate_expedition(self, expedition_id: int) -> Expedition:
        expedition = await self.get_expedition(expedition_id)
        if not expedition.is_active:
            return expedition

        async with atomic(self.db, "deactivate_expedition"):
            expedition.is_active = False

        logger.info("Expedition deactivated", extra_data={"expedition_id": expedition_id})
        return expedition
