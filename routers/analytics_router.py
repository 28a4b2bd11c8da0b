"""
Analytics Router - platform-wide generation metrics
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from database import get_db
from database_models import User
from services.analytics_service import AnalyticsService
from utils.shared_utils import log_endpoint_event

# Create router
analytics_router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@analytics_router.get("")
async def get_platform_analytics(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Total generations and the five most used tools"""
    analytics = await AnalyticsService(db).get_public_analytics()
    log_endpoint_event("/analytics", current_user.id, "success", {"total": analytics["totalGenerations"]})
    return analytics
