from fastapi import HTTPException
from sqlalchemy.orm import Session

from tripledger.models.trip import Trip
from tripledger.models.user import User


def get_owned(db: Session, model, object_id: int, user: User, label: str):
    """Loads a row by id; 404 when missing, 403 when it belongs to someone else."""
    obj = db.query(model).filter(model.id == object_id).first()
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if obj.user_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return obj


def get_trip_by_name(db: Session, user: User, name: str):
    return db.query(Trip).filter(Trip.user_id == user.id, Trip.name == name).first()


def require_trip_name(db: Session, user: User, name: str) -> Trip:
    trip = get_trip_by_name(db, user, name)
    if trip is None:
        raise HTTPException(status_code=400, detail=f"Trip '{name}' does not exist")
    return trip


def is_truthy(value) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}
