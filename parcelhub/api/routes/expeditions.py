"""
Expedition Registry Routes
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from parcelhub.api.dependencies.auth import require_staff
from parcelhub.api.routes.schemas import ok
from parcelhub.core.auth import CallerIdentity
from parcelhub.db.database import get_db
from parcelhub.domain.services.expedition_service import ExpeditionService

router = APIRouter()


class ExpeditionCreate(BaseModel):
    name: str
    code: str
    api_url: Optional[str] = None
    is_active: bool = True

    @field_validator("name", "code")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Name and code are required")
        return v.strip()


class ExpeditionUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    api_url: Optional[str] = None
    is_active: Optional[bool] = None


class ExpeditionResponse(BaseModel):
    id: int
    name: str
    code: str
    api_url: Optional[str] = None
    is_active: bool

    model_config = {"from_attributes": True}


def _dump(expedition) -> dict:
    return ExpeditionResponse.model_validate(expedition).model_dump(mode="json")


@router.get("", summary="List active expedition partners")
async def list_expeditions(db: AsyncSession = Depends(get_db)):
    expeditions = await ExpeditionService(db).list_expeditions()
    return ok("Expeditions retrieved", [_dump(e) for e in expeditions])


@router.get("/all", summary="List every expedition partner, including retired ones (staff)")
async def list_all_expeditions(
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    expeditions = await ExpeditionService(db).list_expeditions(active_only=False)
    return ok("Expeditions retrieved", [_dump(e) for e in expeditions])


@router.post("", status_code=201, summary="Register an expedition partner (staff)")
async def create_expedition(
    payload: ExpeditionCreate,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    expedition = await ExpeditionService(db).create_expedition(
        payload.name, payload.code, payload.api_url, payload.is_active
    )
    return ok("Expedition created successfully", _dump(expedition))


@router.put("/{expedition_id}", summary="Update an expedition partner (staff)")
async def update_expedition(
    expedition_id: int,
    payload: ExpeditionUpdate,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    expedition = await ExpeditionService(db).update_expedition(
        expedition_id, payload.model_dump(exclude_unset=True)
    )
    return ok("Expedition updated successfully", _dump(expedition))


@router.delete("/{expedition_id}", summary="Retire an expedition partner (staff)")
async def deactivate_expedition(
    expedition_id: int,
    staff: CallerIdentity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    expedition = await ExpeditionService(db).deactivate_expedition(expedition_id)
    return ok("Expedition deactivated", _dump(expedition))
