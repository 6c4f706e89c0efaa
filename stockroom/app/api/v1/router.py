from fastapi import APIRouter

from stockroom.app.api.v1.endpoints.parts import router as parts_router
from stockroom.app.api.v1.endpoints.reconciliation import router as reconciliation_router
from stockroom.app.api.v1.endpoints.stock_movements import router as stock_movements_router

router = APIRouter()
router.include_router(parts_router, tags=["parts"])
router.include_router(reconciliation_router, tags=["reconciliation"])
router.include_router(stock_movements_router, tags=["stock_movements"])
