from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from stylecheck.api.dependencies import get_safety_service
from stylecheck.models.safety import SafetyCheckRequest, SafetyCheckResponse
from stylecheck.services.safety import SafetyCheckService

router = APIRouter(prefix="/safety", tags=["safety"])

ERROR_STATUS = {"bad_request": 400, "feature_disabled": 503}


@router.post("/check", response_model=SafetyCheckResponse)
async def safety_check(
    payload: SafetyCheckRequest,
    x_user_id: str | None = Header(default=None),
    service: SafetyCheckService = Depends(get_safety_service),
):
    response = await service.check(payload, user_id=x_user_id)
    if not response.ok:
        status = ERROR_STATUS.get(response.error.kind if response.error else "", 500)
        return JSONResponse(status_code=status, content=response.model_dump(mode="json"))
    return response
