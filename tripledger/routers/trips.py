import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from tripledger.core.security import get_current_user
from tripledger.db.session import get_db
from tripledger.models.expense import Expense
from tripledger.models.trip import Trip
from tripledger.models.user import User
from tripledger.routers.common import get_owned, get_trip_by_name
from tripledger.schemas.trip import TripCreate, TripOut, TripSummary
from tripledger.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trips", tags=["trips"])


def _ensure_name_free(db: Session, user: User, name: str, trip_id: int = None) -> None:
    existing = get_trip_by_name(db, user, name)
    if existing is not None and existing.id != trip_id:
        raise HTTPException(status_code=409, detail=f"Trip '{name}' already exists")


@router.get("", response_model=list[TripOut])
def list_trips(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return (
        db.query(Trip)
        .filter(Trip.user_id == user.id)
        .order_by(Trip.created_at.desc(), Trip.id.desc())
        .all()
    )


@router.get("/summary", response_model=list[TripSummary])
def trip_summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = (
        db.query(
            Trip.id,
            Trip.name,
            func.coalesce(func.sum(Expense.cost), 0),
            func.count(Expense.id),
        )
        .outerjoin(Expense, (Expense.trip_name == Trip.name) & (Expense.user_id == Trip.user_id))
        .filter(Trip.user_id == user.id)
        .group_by(Trip.id, Trip.name)
        .order_by(Trip.id)
        .all()
    )
    return [
        TripSummary(trip_id=row[0], trip_name=row[1], total_spent=row[2], expense_count=row[3])
        for row in rows
    ]


@router.post("", response_model=TripOut, status_code=201)
def create_trip(
    payload: TripCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _ensure_name_free(db, user, payload.name)

    trip = Trip(user_id=user.id, name=payload.name, description=payload.description)
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


@router.get("/{trip_id}", response_model=TripOut)
def get_trip(trip_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_owned(db, Trip, trip_id, user, "Trip")


@router.put("/{trip_id}", response_model=TripOut)
def update_trip(
    trip_id: int,
    payload: TripCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    trip = get_owned(db, Trip, trip_id, user, "Trip")
    _ensure_name_free(db, user, payload.name, trip_id=trip.id)

    old_name = trip.name
    trip.name = payload.name
    trip.description = payload.description

    if old_name != payload.name:
        renamed = (
            db.query(Expense)
            .filter(Expense.user_id == user.id, Expense.trip_name == old_name)
            .update({Expense.trip_name: payload.name}, synchronize_session=False)
        )
        logger.info(f"Renamed trip {trip.id}: moved {renamed} expense(s) to '{payload.name}'")

    db.commit()
    db.refresh(trip)
    return trip


@router.delete("/{trip_id}", status_code=204)
def delete_trip(trip_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trip = get_owned(db, Trip, trip_id, user, "Trip")

    expenses = db.query(Expense).filter(Expense.user_id == user.id, Expense.trip_name == trip.name).all()
    for expense in expenses:
        if expense.receipt_path:
            storage_service.delete_file(expense.receipt_path)
        db.delete(expense)

    # Mileage log rows go with the trip through the relationship cascade, their images do not
    for log in trip.mileage_logs:
        for image_url in (log.start_image_url, log.end_image_url):
            if image_url:
                storage_service.delete_file(image_url)

    db.delete(trip)
    db.commit()

    logger.info(f"Deleted trip {trip_id} with {len(expenses)} expense(s)")
    return Response(status_code=204)
