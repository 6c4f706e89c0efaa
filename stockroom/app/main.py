import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stockroom.app.api.v1.router import router as v1_router
from stockroom.config import SETTINGS
from stockroom.services.errors import StockroomError

logging.basicConfig(
    level=SETTINGS.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="STOCKROOM", version="0.1.0")


@app.exception_handler(StockroomError)
def handle_stockroom_error(request: Request, exc: StockroomError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


app.include_router(v1_router, prefix="/v1")
