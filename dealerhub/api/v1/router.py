from fastapi import APIRouter

from dealerhub.api.v1.endpoints.health import router as health_router
from dealerhub.api.v1.endpoints.users import router as users_router
from dealerhub.api.v1.endpoints.me import router as me_router
from dealerhub.api.v1.endpoints.dealerships import router as dealerships_router
from dealerhub.api.v1.endpoints.listings import router as listings_router
from dealerhub.api.v1.endpoints.ingest import router as ingest_router
from dealerhub.api.v1.endpoints.admin import router as admin_router
from dealerhub.api.v1.endpoints.marketplace import router as marketplace_router
from dealerhub.api.v1.endpoints.leads import router as leads_router
from dealerhub.api.v1.endpoints.transactions import router as transactions_router
from dealerhub.api.v1.endpoints.commissions import router as commissions_router
from dealerhub.api.v1.endpoints.search import router as search_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(users_router, tags=["internal"])
router.include_router(me_router, tags=["me"])
router.include_router(dealerships_router, tags=["dealerships"])
router.include_router(listings_router, tags=["listings"])
router.include_router(ingest_router, tags=["ingest"])
router.include_router(admin_router, tags=["admin"])
router.include_router(marketplace_router, tags=["marketplace"])
router.include_router(leads_router, tags=["leads"])
router.include_router(transactions_router, tags=["transactions"])
router.include_router(commissions_router, tags=["commissions"])
router.include_router(search_router, tags=["search"])
