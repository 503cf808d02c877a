from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from farewatch.api import cars, health, trips
from farewatch.scheduler import start_scheduler, stop_scheduler
from farewatch.scrapers.browser import BrowserPool
from farewatch.services.chart import ChartRenderer
from farewatch.services.notification import TelegramNotifier
from farewatch.config import get_settings
from farewatch.database import init_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting FareWatch")

    init_db()

    app.state.browser_pool = BrowserPool()
    app.state.notifier = TelegramNotifier()
    app.state.chart_renderer = ChartRenderer()

    if settings.scheduler_enabled:
        try:
            start_scheduler(app.state.browser_pool, app.state.notifier, app.state.chart_renderer)
            logger.info("✅ APScheduler started")
        except Exception as e:
            logger.error(f"❌ Scheduler startup failed: {e}")
    else:
        logger.info("Scheduler disabled")

    # Application is running
    yield

    # Shutdown
    logger.info("🛑 Shutting down FareWatch")

    try:
        stop_scheduler()
        await app.state.browser_pool.close()
        await app.state.notifier.close()
        await app.state.chart_renderer.close()
        logger.info("✅ Shutdown complete")

    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="FareWatch",
    description="Google Flights and Kayak car-rental price monitor with Telegram alerts",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(trips.router, prefix="/trips", tags=["trips"])
app.include_router(cars.router, prefix="/cars", tags=["cars"])
app.include_router(health.router, tags=["health"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
