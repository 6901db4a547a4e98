from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError
from sqlalchemy.orm import Session

from clinic_backend.auth import jwt_handler
from clinic_backend.auth.context import CallerContext
from clinic_backend.database import get_db
from clinic_backend.models.user import PATIENT_ROLE, PROFESSIONAL_ROLE, Patient, Professional, User

security = HTTPBearer()


def resolve_caller(db: Session, email: str) -> CallerContext | None:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        return None

    patient_id = None
    professional_id = None
    if user.role == PATIENT_ROLE:
        patient = db.query(Patient).filter(Patient.user_id == user.id).first()
        patient_id = patient.id if patient else None
    elif user.role == PROFESSIONAL_ROLE:
        professional = db.query(Professional).filter(Professional.user_id == user.id).first()
        professional_id = professional.id if professional else None

    return CallerContext(
        user_id=user.id,
        role=user.role,
        patient_id=patient_id,
        professional_id=professional_id,
    )


def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> CallerContext:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    caller = resolve_caller(db, email)
    if caller is None:
        raise HTTPException(status_code=401, detail="User not found")
    return caller
