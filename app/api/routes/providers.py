"""
Provider API Endpoints

GET /api/v1/providers/guidance - Approved mentors with their upcoming free windows
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Caller, get_caller
from app.database import get_db
from app.services.availability_store import AvailabilityStore
from app.utils.timeutils import utcnow

router = APIRouter(prefix="/api/v1/providers", tags=["providers"])


class FreeWindow(BaseModel):
    id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int


class GuidanceProvider(BaseModel):
    id: int
    display_name: str
    roles_supported: List[str]
    years_of_experience: Optional[int]
    windows: List[FreeWindow]


class GuidanceProviderList(BaseModel):
    data: List[GuidanceProvider]
    metadata: Dict[str, Any]


@router.get("/guidance", response_model=GuidanceProviderList)
async def list_guidance_providers(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    listing = await AvailabilityStore().list_guidance_providers(db, now)

    return {
        "data": [
            GuidanceProvider(
                id=provider.id,
                display_name=provider.display_name,
                roles_supported=list(provider.roles_supported or []),
                years_of_experience=provider.years_of_experience,
                windows=[
                    FreeWindow(
                        id=w.id,
                        start_time=w.start_time,
                        end_time=w.end_time,
                        duration_minutes=w.duration_minutes,
                    )
                    for w in windows
                ],
            )
            for provider, windows in listing
        ],
        "metadata": {"timestamp": now.isoformat(), "count": len(listing)},
    }
