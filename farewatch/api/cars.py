import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from farewatch.api.deps import get_monitoring_service, not_found_detail, setup_failed_detail
from farewatch.database import get_db
from farewatch.exceptions import MonitoringSetupError
from farewatch.schemas import CarRentalCreate, CarRentalResponse
from farewatch.services.messages import MessageKey
from farewatch.services.monitoring_service import MonitoringService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=CarRentalResponse, status_code=201)
async def start_car_monitoring(
    payload: CarRentalCreate,
    db: Session = Depends(get_db),
    service: MonitoringService = Depends(get_monitoring_service),
):
    try:
        return await service.start_car_monitoring(
            payload.user_id,
            payload.airport_code,
            payload.start_date,
            payload.end_date,
            payload.language,
        )
    except MonitoringSetupError as e:
        logger.warning(f"Car rental setup failed for user {payload.user_id}: {e}")
        raise HTTPException(
            status_code=422,
            detail=setup_failed_detail(
                db, payload.user_id, payload.language, MessageKey.CAR_SETUP_FAILED
            ),
        )


@router.get("", response_model=List[CarRentalResponse])
async def list_car_rentals(
    user_id: int = Query(...),
    service: MonitoringService = Depends(get_monitoring_service),
):
    return service.list_car_rentals(user_id)


@router.delete("/{rental_id}")
async def stop_car_monitoring(
    rental_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    service: MonitoringService = Depends(get_monitoring_service),
):
    if not service.stop_car_monitoring(user_id, rental_id):
        raise HTTPException(status_code=404, detail=not_found_detail(db, user_id))
    return {"deleted": rental_id}
