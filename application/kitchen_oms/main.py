from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from kitchen_oms.connections.database import close_db_pool
from kitchen_oms.logging.utils import initialize_logging, get_app_logger
from kitchen_oms.middlewares.logging_middleware import AuditMiddleware

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

# Initialize Sentry (must be done early, before other imports)
from kitchen_oms.config.sentry import init_sentry
init_sentry()

# Initialize structured logging
initialize_logging()
logger = get_app_logger('kitchen_oms.main')

logger.info(f"Running in {'debug' if configs.DEBUG else 'production'} mode")


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(f"Starting {configs.APP_NAME}")
    yield
    logger.info(f"Shutting down {configs.APP_NAME}")
    close_db_pool()

# Disable docs in production (when DEBUG=false)
docs_url = "/docs" if configs.DEBUG else None
redoc_url = "/redoc" if configs.DEBUG else None

app = FastAPI(
    title="Kitchen OMS",
    version=configs.APP_VERSION,
    lifespan=lifespan,
    docs_url=docs_url,
    redoc_url=redoc_url
)

origins = configs.ALLOWED_ORIGINS or ["*"]

# Transaction Lock Middleware (must be before auth middlewares)
from kitchen_oms.middleware.transaction_lock import TransactionLockMiddleware
app.add_middleware(TransactionLockMiddleware)

# Middlewares
from kitchen_oms.middlewares.admin_token import AdminTokenMiddleware
app.add_middleware(AdminTokenMiddleware)

# Request/Audit logging middleware (added last so it wraps everything)
app.add_middleware(AuditMiddleware)

logger.info(f"Configuring CORS with allowed origins: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register custom exception handlers
from kitchen_oms.middlewares.handlers import register_exception_handlers
register_exception_handlers(app)


# Routes
from kitchen_oms.routes.app import app_router
from kitchen_oms.routes.admin import admin_router
from kitchen_oms.routes.health import router as health_router
from kitchen_oms.routes.webhooks.razorpay_webhook import razorpay_webhook_router

app.include_router(app_router, prefix="/app/v1")
app.include_router(admin_router, prefix="/admin/v1")
app.include_router(health_router, tags=["health"])
app.include_router(razorpay_webhook_router, prefix="/razorpay")
