from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tripledger.core.security import get_current_user, hash_password, verify_password
from tripledger.db.session import get_db
from tripledger.models.user import User
from tripledger.schemas.user import PasswordChange, ProfileUpdate, UserOut

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("", response_model=UserOut)
def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put("", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    email = str(payload.email)
    taken = db.query(User).filter(User.email == email, User.id != user.id).first()
    if taken:
        raise HTTPException(status_code=409, detail="Email is already in use")

    user.first_name = payload.first_name
    user.last_name = payload.last_name
    user.phone_number = payload.phone_number
    user.email = email
    user.bio = payload.bio

    db.commit()
    db.refresh(user)
    return user


@router.post("/change-password")
def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.password_hash = hash_password(payload.new_password)
    db.commit()
    return {"message": "Password updated successfully"}
