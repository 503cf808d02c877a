import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from farewatch.api.deps import get_monitoring_service, not_found_detail, setup_failed_detail
from farewatch.database import get_db
from farewatch.exceptions import MonitoringSetupError
from farewatch.schemas import TripCreate, TripResponse
from farewatch.services.monitoring_service import MonitoringService, TripListing

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_response(listing: TripListing) -> TripResponse:
    response = TripResponse.model_validate(listing.trip)
    response.min_price = listing.min_price
    response.max_price = listing.max_price
    response.flight_count = listing.flight_count
    return response


@router.post("", response_model=List[TripResponse], status_code=201)
async def start_trip_monitoring(
    payload: TripCreate,
    db: Session = Depends(get_db),
    service: MonitoringService = Depends(get_monitoring_service),
):
    """Start monitoring a Google Flights search, one trip per date in the range."""
    try:
        trips = await service.start_monitoring(
            payload.user_id, payload.url, payload.date_range, payload.language
        )
    except MonitoringSetupError as e:
        logger.warning(f"Trip setup failed for user {payload.user_id}: {e}")
        raise HTTPException(
            status_code=422,
            detail=setup_failed_detail(db, payload.user_id, payload.language),
        )

    trip_ids = {t.id for t in trips}
    return [
        _to_response(listing)
        for listing in service.list_trips(payload.user_id)
        if listing.trip.id in trip_ids
    ]


@router.get("", response_model=List[TripResponse])
async def list_trips(
    user_id: int = Query(...),
    service: MonitoringService = Depends(get_monitoring_service),
):
    return [_to_response(listing) for listing in service.list_trips(user_id)]


@router.delete("/{trip_id}")
async def stop_trip_monitoring(
    trip_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    service: MonitoringService = Depends(get_monitoring_service),
):
    if not service.stop_monitoring(user_id, trip_id):
        raise HTTPException(status_code=404, detail=not_found_detail(db, user_id))
    return {"deleted": trip_id}
