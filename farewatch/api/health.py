from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from farewatch.database import get_db
from farewatch.scheduler import get_scheduler_status

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    pool = getattr(request.app.state, "browser_pool", None)

    return {
        "status": "ok" if db_status == "healthy" else "degraded",
        "database": db_status,
        "browser": "connected" if pool is not None and pool.is_connected else "idle",
        "scheduler": get_scheduler_status(),
    }
