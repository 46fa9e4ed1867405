"""
Per-plugin API for the Qibla bearing. Mounted at /api/components/qibla/.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from .qibla import distance_to_kaaba_km, get_qibla_direction


class QiblaResponse(BaseModel):
    latitude: float
    longitude: float
    direction: float  # degrees clockwise from true north
    distance_km: float


def get_router(salah_app) -> Optional[APIRouter]:
    """Return router for this plugin; mounted with prefix /api/components/qibla."""
    router = APIRouter(tags=["Qibla"])

    @router.get("/direction", response_model=QiblaResponse)
    def get_direction(latitude: float, longitude: float) -> QiblaResponse:
        if not salah_app.qibla_enabled:
            raise HTTPException(status_code=404, detail="Qibla component disabled")
        return QiblaResponse(
            latitude=latitude,
            longitude=longitude,
            direction=get_qibla_direction(latitude, longitude),
            distance_km=round(distance_to_kaaba_km(latitude, longitude), 1),
        )

    return router
