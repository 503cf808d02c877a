from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from farewatch.config import get_settings
from farewatch.database import get_db
from farewatch.models import User
from farewatch.services.messages import Language, MessageKey, translate
from farewatch.services.monitoring_service import MonitoringService, build_monitoring_service

settings = get_settings()


def get_monitoring_service(request: Request, db: Session = Depends(get_db)) -> MonitoringService:
    """MonitoringService bound to the request session and the app-wide collaborators."""
    state = request.app.state
    return build_monitoring_service(
        db,
        state.browser_pool,
        getattr(state, "notifier", None),
        getattr(state, "chart_renderer", None),
    )


def user_language(db: Session, user_id: int, requested: Optional[str] = None) -> Language:
    if requested:
        return Language.from_code(requested)
    user = db.get(User, user_id)
    return Language.from_code(user.language if user else settings.default_language)


def setup_failed_detail(db: Session, user_id: int, requested: Optional[str] = None,
                        key: MessageKey = MessageKey.SETUP_FAILED) -> str:
    return translate(key, user_language(db, user_id, requested))


def not_found_detail(db: Session, user_id: int) -> str:
    return translate(MessageKey.NOT_FOUND, user_language(db, user_id))
