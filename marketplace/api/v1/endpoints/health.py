from fastapi import APIRouter

from marketplace.core.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    return {"success": True, "status": "ok", "service": settings.service_name, "env": settings.env}
