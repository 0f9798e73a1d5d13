import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from formsapi.audit import configure_audit_log
from formsapi.config import config
from formsapi.database import database
from formsapi.engine.errors import (
    FormsError,
    InactiveFormError,
    InactiveResponseError,
    NotFoundError,
    ProtectedFormError,
    SchemaVersionConflictError,
    SchemaVersionMismatchError,
)
from formsapi.routers.form import router as form_router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    InactiveFormError: 410,
    InactiveResponseError: 410,
    ProtectedFormError: 403,
    SchemaVersionConflictError: 409,
    SchemaVersionMismatchError: 409,
}


def configure_logging():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_audit_log(config.AUDIT_LOG_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # connect database
    await database.connect()
    yield
    # disconnect database
    await database.disconnect()

app = FastAPI(
    title="Forms API",
    description="API for dynamic forms with conditional and calculated fields",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FormsError)
async def forms_error_handler(request: Request, exc: FormsError):
    # every other engine error is a problem with the submitted definition or values
    status_code = ERROR_STATUS.get(type(exc), 422)
    logger.info(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": exc.to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


app.include_router(form_router, prefix="/api/forms", tags=["Form"])
