import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .middleware import RequestLoggingMiddleware
from .routes import router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Site Metadata Crawler",
    description=(
        "Crawls a single domain from a seed URL and exports every HTML page's metadata "
        "(title, description, open graph / twitter card fields, canonical, robots) "
        "as JSON and CSV, together with skipped and failed URLs."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger(__name__).error("Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred.", "code": "internal_error"},
    )


app.include_router(router)
