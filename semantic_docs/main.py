import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .models import ErrorResponse, SearchRequest, SearchResponse
from .providers import close_search_client, connect_search_client
from .search_service import handle_search

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_search_client(app, settings)
    logger.info("Search client ready backend=%s", settings.search_backend)
    try:
        yield
    finally:
        await close_search_client(app)
        logger.info("Closed search client")


app = FastAPI(title="Semantic Docs Search API", version="1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.api_route(
    "/api/search",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    responses={
        200: {"model": SearchResponse},
        400: {"model": ErrorResponse},
        405: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    openapi_extra={
        "requestBody": {"content": {"application/json": {"schema": SearchRequest.model_json_schema()}}},
    },
)
async def search(request: Request):
    raw_body = await request.body() if request.method == "POST" else None
    status_code, body = await handle_search(
        raw_body,
        settings,
        getattr(request.app.state, "search_client", None),
        method=request.method,
    )
    return JSONResponse(body, status_code=status_code)


@app.get("/health")
async def health():
    _, identifier = settings.provider_identifier()
    return JSONResponse({
        "status": "ok",
        "backend": settings.search_backend,
        "configured": bool(identifier),
    })
