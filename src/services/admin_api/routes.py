# src/services/admin_api/routes.py
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from src.common.exceptions import AdminActionForbiddenError, StoreUnavailableError
from src.core.admin import AdminService
from src.services.admin_api.dependencies import get_admin_service, verify_admin_token

router = APIRouter(prefix="/admin", tags=["admin"])


class ResetResponse(BaseModel):
    status: str = "ok"
    cleared: list[str]


@router.post("/reset", response_model=ResetResponse, dependencies=[Depends(verify_admin_token)])
async def reset(service: AdminService = Depends(get_admin_service)):
    # Удаляются только calls и transactions
    try:
        cleared = await service.reset()
    except AdminActionForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return ResetResponse(cleared=cleared)
