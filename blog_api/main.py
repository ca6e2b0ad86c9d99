import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blog_api.cache import cache
from blog_api.config import settings
from blog_api.exceptions import EngagementError
from blog_api.middleware import TimingMiddleware
from blog_api.routers import articles, metrics

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    try:
        await cache.connect()
    except Exception as exc:
        # Reads fall back to the database and every request is anonymous.
        logger.warning("Starting without Redis: %s", exc)
    yield
    await cache.disconnect()

app = FastAPI(
    title="Blog API - Article Engagement",
    description="Articles, comments and likes with author-only editing",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Domain errors -> HTTP
@app.exception_handler(EngagementError)
async def engagement_error_handler(request: Request, exc: EngagementError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

# Routers
app.include_router(articles.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
