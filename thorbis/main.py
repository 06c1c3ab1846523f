import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from thorbis.api.responses import register_exception_handlers
from thorbis.api.search.router import router as search_router
from thorbis.api.v2.businesses import router as businesses_router
from thorbis.core.config import settings
from thorbis.core.database import dispose_engine
from thorbis.core.logging import configure_logging

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


app = FastAPI(
    title="Thorbis Directory API",
    description="Local business directory search, listings and map queries",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def record_start_time(request: Request, call_next):
    request.state.started = time.perf_counter()
    return await call_next(request)


register_exception_handlers(app)

# Include routers
app.include_router(businesses_router, prefix="/api/v2/businesses", tags=["Businesses"])
app.include_router(search_router, prefix="/api", tags=["Search"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
