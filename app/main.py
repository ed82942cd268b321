from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import connect_db, disconnect_db
from app.errors import register_exception_handlers
from app.logging_config import configure_logging
from app.monitoring.router import router as monitoring_router
from app.saved_searches.router import router as saved_searches_router
from app.search.router import router as search_router
from app.security.monitor import InMemoryMonitorStore, QueryMonitor
from app.security.router import router as security_router

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_db()
    yield
    await disconnect_db()


app = FastAPI(
    title="Spot Exchange Search",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DOCS_ENABLED else None,
    redoc_url="/redoc" if settings.DOCS_ENABLED else None,
    openapi_url="/openapi.json" if settings.DOCS_ENABLED else None,
)

# One monitor per application instance; routes get it via get_query_monitor.
app.state.query_monitor = QueryMonitor(
    InMemoryMonitorStore(max_history=settings.MONITOR_HISTORY_SIZE),
    rapid_query_threshold=settings.RAPID_QUERY_THRESHOLD,
    sql_injection_threshold=settings.SQL_INJECTION_THRESHOLD,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(search_router)
app.include_router(saved_searches_router)
app.include_router(security_router)
app.include_router(monitoring_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
