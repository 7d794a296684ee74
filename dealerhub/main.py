import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dealerhub.api.v1.router import router as v1_router
from dealerhub.core.config import settings
from dealerhub.core.errors import HubError
from dealerhub.core.telemetry import setup_telemetry
from dealerhub.schemas.common import ErrorResponse

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(title="Dealer Hub API", version="0.1.0")


@app.exception_handler(HubError)
async def hub_error_handler(request: Request, exc: HubError) -> JSONResponse:
    if exc.status_code >= 500:
        log.warning("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.message)
    body = ErrorResponse(code=exc.kind, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(e.get("loc", ())), "type": e.get("type"), "msg": e.get("msg")}
        for e in exc.errors()
    ]
    body = ErrorResponse(code="validation_error", message="Invalid request", details=details)
    return JSONResponse(status_code=422, content=jsonable_encoder(body))


setup_telemetry(app)
app.include_router(v1_router)
