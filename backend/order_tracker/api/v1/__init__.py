"""
API v1 package initialization.

Admin routers for order progress, stages and notification review.
"""

from order_tracker.api.v1.notifications import router as notifications_router
from order_tracker.api.v1.progress import router as progress_router
from order_tracker.api.v1.stages import router as stages_router

__all__ = ["notifications_router", "progress_router", "stages_router"]
