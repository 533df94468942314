import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from formapi.config import config
from formapi.database import database
from formapi.errors import FieldError, RequestValidationFailed, StorageError
from formapi.logging_conf import configure_logging
from formapi.routers.form import router as form_router
from formapi.routers.qr import redirect_router as qr_redirect_router
from formapi.routers.qr import router as qr_router
from formapi.routers.response import router as response_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # connect database
    await database.connect()
    logger.info(f"Connected to database ({config.ENV_STATE})")
    yield
    # disconnect database
    await database.disconnect()


app = FastAPI(
    title="Form Builder API",
    description="API for building forms and collecting responses",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def validation_error_response(errors) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation errors",
            "errors": [e.as_dict() for e in errors],
        },
    )


@app.exception_handler(RequestValidationFailed)
async def request_validation_failed_handler(request: Request, exc: RequestValidationFailed):
    return validation_error_response(exc.errors)


@app.exception_handler(RequestValidationError)
async def fastapi_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        location, *path = err["loc"] or ("body",)
        field = ".".join(str(part) for part in path) or str(location)
        errors.append(FieldError(field=field, message=err["msg"], location=str(location)))
    return validation_error_response(errors)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": "Storage unavailable"},
    )


app.include_router(form_router, prefix="/api/forms", tags=["Form"])
app.include_router(response_router, prefix="/api/forms", tags=["Response"])
app.include_router(qr_router, prefix="/api/forms", tags=["QR"])
app.include_router(qr_redirect_router, tags=["QR"])
