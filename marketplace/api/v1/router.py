from fastapi import APIRouter, Depends

from marketplace.api.v1.endpoints.auth import router as auth_router
from marketplace.api.v1.endpoints.categories import router as categories_router
from marketplace.api.v1.endpoints.favorites import router as favorites_router
from marketplace.api.v1.endpoints.health import router as health_router
from marketplace.api.v1.endpoints.listings import router as listings_router
from marketplace.api.v1.endpoints.messages import router as messages_router
from marketplace.api.v1.endpoints.uploads import router as uploads_router
from marketplace.api.v1.endpoints.users import router as users_router
from marketplace.services.rate_limit import enforce_rate_limit


router = APIRouter(prefix="/api", dependencies=[Depends(enforce_rate_limit)])
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, tags=["auth"])
router.include_router(users_router, tags=["users"])
router.include_router(listings_router, tags=["listings"])
router.include_router(categories_router, tags=["categories"])
router.include_router(favorites_router, tags=["favorites"])
router.include_router(messages_router, tags=["messages"])
router.include_router(uploads_router, tags=["uploads"])
