from fastapi import APIRouter, Depends
from pydantic import BaseModel

from clinic_backend.auth.context import CallerContext
from clinic_backend.auth.dependencies import get_current_caller

router = APIRouter(tags=['auth'])


class CallerResponse(BaseModel):
    user_id: int
    role: str
    patient_id: int | None = None
    professional_id: int | None = None
    is_staff: bool


@router.get('/me', response_model=CallerResponse)
def read_current_caller(caller: CallerContext = Depends(get_current_caller)):
    return CallerResponse(
        user_id=caller.user_id,
        role=caller.role,
        patient_id=caller.patient_id,
        professional_id=caller.professional_id,
        is_staff=caller.is_staff,
    )
