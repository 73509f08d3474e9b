# checkin/routes_users.py
from fastapi import APIRouter, Depends, Query

from checkin.deps import Services, get_services
from checkin.models import RegisterIn

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users/register")
def register(payload: RegisterIn, services: Services = Depends(get_services)):
    user = services.verification.register(payload.email, payload.checkin_frequency)
    return {
        "success": True,
        "user": user.model_dump(mode="json", exclude={"verification_token"}),
    }


@router.get("/verify")
def verify(token: str = Query(default=""), services: Services = Depends(get_services)):
    return services.verification.verify(token)
