"""
FastAPI dependencies for admin authentication and service construction.

This module provides dependency functions for bearer JWT verification,
database session management and the progress and notification services
bound to the request session.
"""

from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from order_tracker.core.config import Settings, get_settings
from order_tracker.core.logging import get_logger, set_admin_id
from order_tracker.core.security import TokenError, decode_token
from order_tracker.database.connection import get_db
from order_tracker.services.notifications.repository import NotificationQueueRepository
from order_tracker.services.notifications.service import (
    NotificationDispatcher,
    NotificationReviewService,
    get_notification_dispatcher,
)
from order_tracker.services.notifications.transports import (
    get_email_transport,
    get_sms_transport,
)
from order_tracker.services.progress.service import ProgressService, get_progress_service

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminPrincipal:
    """Authenticated admin taken from the access token claims."""

    id: str
    email: Optional[str] = None


async def get_current_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AdminPrincipal:
    """
    Validate the bearer token and return the admin it identifies.

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        payload = decode_token(credentials.credentials)
    except TokenError as e:
        logger.warning(
            "Authentication failed",
            code=e.code,
            error=str(e),
        )
        raise credentials_exception

    admin = AdminPrincipal(id=str(payload["sub"]), email=payload.get("email"))
    set_admin_id(admin.id)
    return admin


def get_app_settings() -> Settings:
    return get_settings()


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentAdmin = Annotated[AdminPrincipal, Depends(get_current_admin)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


async def get_progress_service_dep(
    db: DatabaseSession,
    settings: AppSettings,
) -> ProgressService:
    return get_progress_service(db, settings=settings)


async def get_review_service(
    db: DatabaseSession,
    settings: AppSettings,
) -> NotificationReviewService:
    return NotificationReviewService(
        NotificationQueueRepository(db),
        body_max_length=settings.notification_body_max_length,
    )


async def get_dispatcher(
    db: DatabaseSession,
    settings: AppSettings,
) -> NotificationDispatcher:
    return get_notification_dispatcher(
        NotificationQueueRepository(db),
        sms_transport=get_sms_transport(settings),
        email_transport=get_email_transport(settings),
        settings=settings,
    )


ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service_dep)]
ReviewServiceDep = Annotated[NotificationReviewService, Depends(get_review_service)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
