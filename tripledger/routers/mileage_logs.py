import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy.orm import Session

from tripledger.core.security import get_current_user
from tripledger.db.session import get_db
from tripledger.models.mileage_log import MileageLog
from tripledger.models.trip import Trip
from tripledger.models.user import User
from tripledger.routers.common import get_owned, is_truthy
from tripledger.schemas.mileage_log import MileageLogCreate, MileageLogOut, MileageLogUpdate
from tripledger.services.ocr_service import ocr_service
from tripledger.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mileage-logs", tags=["mileage"])

SORT_COLUMNS = {
    "id": MileageLog.id,
    "tripDate": MileageLog.trip_date,
    "startOdometer": MileageLog.start_odometer,
    "endOdometer": MileageLog.end_odometer,
    "calculatedDistance": MileageLog.calculated_distance,
    "createdAt": MileageLog.created_at,
}


def _check_trip(db: Session, user: User, trip_id: Optional[int]) -> None:
    if trip_id is None:
        return
    trip = db.query(Trip).filter(Trip.id == trip_id, Trip.user_id == user.id).first()
    if trip is None:
        raise HTTPException(status_code=400, detail=f"Trip {trip_id} does not exist")


@router.get("", response_model=list[MileageLogOut])
def list_mileage_logs(
    trip_id: Optional[int] = Query(None, alias="tripId", gt=0),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    limit: Optional[int] = Query(None, gt=0),
    offset: Optional[int] = Query(None, ge=0),
    sort_by: str = Query("tripDate", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(MileageLog).filter(MileageLog.user_id == user.id)

    if trip_id:
        query = query.filter(MileageLog.trip_id == trip_id)
    if start_date:
        query = query.filter(MileageLog.trip_date >= start_date)
    if end_date:
        query = query.filter(MileageLog.trip_date <= end_date)

    # Unknown columns fall back to the trip date
    column = SORT_COLUMNS.get(sort_by, MileageLog.trip_date)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, MileageLog.id.asc() if sort_order == "asc" else MileageLog.id.desc())

    if limit:
        query = query.limit(limit)
    if offset:
        query = query.offset(offset)

    return query.all()


@router.post("", response_model=MileageLogOut, status_code=201)
def create_mileage_log(
    payload: MileageLogCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _check_trip(db, user, payload.trip_id)

    log = MileageLog(
        user_id=user.id,
        calculated_distance=payload.end_odometer - payload.start_odometer,
        **payload.model_dump(),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


@router.post("/upload-odometer")
def upload_odometer(
    odometer_image: UploadFile = File(None, alias="odometerImage"),
    process_ocr: Optional[str] = Form(None, alias="processOcr"),
    user: User = Depends(get_current_user),
):
    if odometer_image is None or not odometer_image.filename:
        raise HTTPException(status_code=400, detail="Odometer image file is required")
    storage_service.validate(odometer_image.filename)

    contents = odometer_image.file.read()
    image_url = storage_service.save_odometer_image(user.id, odometer_image.filename, contents)

    if not is_truthy(process_ocr):
        return {"success": True, "imageUrl": image_url}

    result = ocr_service.read_odometer(contents, odometer_image.filename)
    if result.get("success"):
        return {"success": True, "imageUrl": image_url, "reading": result["reading"]}

    # The upload itself worked, so the URL is still handed back
    return {
        "success": False,
        "imageUrl": image_url,
        "error": result.get("error") or "Failed to extract odometer reading.",
    }


@router.get("/{log_id}", response_model=MileageLogOut)
def get_mileage_log(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return get_owned(db, MileageLog, log_id, user, "Mileage log")


@router.put("/{log_id}", response_model=MileageLogOut)
def update_mileage_log(
    log_id: int,
    payload: MileageLogUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    log = get_owned(db, MileageLog, log_id, user, "Mileage log")
    changes = payload.model_dump(exclude_unset=True)

    if "trip_id" in changes:
        _check_trip(db, user, changes["trip_id"])

    start = changes.get("start_odometer", log.start_odometer)
    end = changes.get("end_odometer", log.end_odometer)
    if start is None or end is None:
        raise HTTPException(status_code=400, detail="Odometer readings cannot be empty")
    if end < start:
        raise HTTPException(
            status_code=400,
            detail="End odometer reading must not be less than start odometer reading",
        )

    for field, value in changes.items():
        if field in ("trip_date", "entry_method") and value is None:
            continue
        setattr(log, field, value)
    log.calculated_distance = end - start

    db.commit()
    db.refresh(log)
    return log


@router.delete("/{log_id}", status_code=204)
def delete_mileage_log(log_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    log = get_owned(db, MileageLog, log_id, user, "Mileage log")

    for image_url in (log.start_image_url, log.end_image_url):
        if image_url:
            storage_service.delete_file(image_url)

    db.delete(log)
    db.commit()
    return Response(status_code=204)
