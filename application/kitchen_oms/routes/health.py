from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

router = APIRouter()

@router.get("/health")
async def health_check(request: Request):

    details = {
        "status": "healthy",
        "version": configs.APP_VERSION,
        "service": configs.APP_NAME
    }
    return JSONResponse(content=details)
