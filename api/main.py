import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core import config, store
from core.errors import ApiError, truncate_details
from diagnostics import router as diagnostics_router
from feed import router as feed_router
from timeline import router as timeline_router
from tracking import router as tracking_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Store clients are created lazily on first use; close them once per process.
    try:
        yield
    finally:
        await store.close_stores()


app = FastAPI(lifespan=lifespan)

# Allow the front end dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(feed_router.router, tags=["feed"])
app.include_router(timeline_router.router, tags=["timeline"])
app.include_router(tracking_router.router, tags=["tracking"])
app.include_router(diagnostics_router.router, tags=["diagnostics"])


@app.exception_handler(ApiError)
async def api_error_handler(_: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": "Invalid request parameters.",
            "details": truncate_details(exc.errors()),
            "stage": "input",
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": str(exc), "stage": "exception"},
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "banana radar api"}
