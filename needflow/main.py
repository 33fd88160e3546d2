import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from needflow.api.v1.router import api_router
from needflow.core import config
from needflow.core.api_response import fail, validation_details
from needflow.core.exceptions import WorkflowError
from needflow.core.logging_config import configure_logging
from needflow.db.base import Base
from needflow.db.session import engine
from needflow.middleware.request_context import RequestContextMiddleware
from needflow.middleware.response_wrapper import ResponseWrapperMiddleware
from needflow.observability.request_metrics import register_request_metrics

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    register_request_metrics()
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="needflow API",
    description="Expression-of-need requests and their sequential approval workflow",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(ResponseWrapperMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    if exc.status_code >= 500:
        logger.error("Workflow error: %s", exc.message)
    else:
        logger.warning("Workflow error: %s", exc.message, extra={"status_code": exc.status_code})
    return fail(status_code=exc.status_code, code=exc.code, message=exc.message, details=exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return fail(
        status_code=400,
        code="validation_error",
        message="Invalid request",
        details=validation_details(exc.errors()),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = fail(status_code=exc.status_code, code="http_error", message=str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "needflow"}


@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    uvicorn.run("needflow.main:app", host="0.0.0.0", port=8000, reload=True)
