# Portal Lead Bridge - Main Application Entry Point

# Load environment variables FIRST (before any other imports that use config)
from dotenv import load_dotenv
load_dotenv()  # This loads the .env file

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig, BridgeSettings, get_settings
from api.routes.portal_webhook_routes import router as portal_webhook_router, PORTAL_WEBHOOK_PATHS

SERVICE_NAME = "Portal Lead Bridge"
SERVICE_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, AppConfig.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events"""
    logger.info(f"🚀 {SERVICE_NAME} starting up...")

    logger.info("🔧 Configuration Status:")
    logger.info(f"   🔗 CRM_WEBHOOK_URL: {'✅ Loaded' if AppConfig.CRM_WEBHOOK_URL else '❌ Missing'}")
    logger.info(f"   🔐 WEBHOOK_SECRET: {'✅ Loaded' if AppConfig.WEBHOOK_SECRET else '⚪ Not set (open endpoint)'}")
    logger.info(f"   ⏱️ CRM_TIMEOUT_SECONDS: {AppConfig.CRM_TIMEOUT_SECONDS}")

    if AppConfig.validate_config():
        logger.info("✅ All required configuration loaded successfully")
    else:
        logger.error("❌ Configuration validation failed - webhook calls will fail until CRM_WEBHOOK_URL is set")

    for path in PORTAL_WEBHOOK_PATHS:
        logger.info(f"✅ Portal webhook listening on POST {path}")

    yield

    logger.info(f"🛑 {SERVICE_NAME} shutting down...")


app = FastAPI(
    title=SERVICE_NAME,
    description="Forwards real-estate portal inquiries into the CRM as leads or activities",
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(portal_webhook_router)


# Health check endpoint
@app.get("/health")
async def health_check(settings: BridgeSettings = Depends(get_settings)):
    """Global health check; reports which settings are present, never their values"""
    return {
        "status": "healthy" if settings.crm_webhook_url else "degraded",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "crm_webhook_configured": bool(settings.crm_webhook_url),
        "webhook_secret_configured": bool(settings.webhook_secret),
        "environment": AppConfig.ENVIRONMENT,
        "endpoints": PORTAL_WEBHOOK_PATHS,
    }


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT)
    except KeyboardInterrupt:
        logger.info(f"🛑 {SERVICE_NAME} shutting down...")
    except Exception as e:
        logger.error(f"❌ Application crashed: {e}")
        raise
