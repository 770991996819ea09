import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import EngineError
from app.core.kafka_producer import close_kafka_singleton
from app.graphql.router import graphql_router
from app.scheduler import init_scheduler, shutdown_scheduler

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s [%(name)s] %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    if settings.SCHEDULER_ENABLED:
        init_scheduler()
    yield
    logger.info("Application shutting down...")
    shutdown_scheduler()
    close_kafka_singleton()


app = FastAPI(
    title="Event Lifecycle Engine",
    version="1.0.0",
    description="""
        Event lifecycle and scheduled notification engine.

        * **Lifecycle**: create, update, publish, cancel and soft-delete events
        * **Capacity**: joins, approvals and FIFO waitlist promotion that never over-fill an event
        * **Reminders**: delayed reminder and feedback jobs that follow event edits
        * **Notifications**: deduplicated per-user notifications pushed over Redis pub/sub
        * **Audit archival**: audit trails of finished events moved to S3

        Mutations live on `/graphql`. Most endpoints require JWT authentication via
        the `Authorization: Bearer <token>` header.
        """,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api/v1")
app.include_router(graphql_router, prefix="/graphql")


@app.get("/")
def read_root():
    return {"status": "Event Lifecycle Engine is running"}
