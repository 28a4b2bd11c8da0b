"""
SettingsRepository for the single-row platform settings document
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import PlatformSettings


class SettingsRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self) -> Optional[PlatformSettings]:
        result = await self.db.execute(select(PlatformSettings).order_by(PlatformSettings.id).limit(1))
        return result.scalar_one_or_none()

    async def upsert(self, platform: dict, user_management: dict, ai_tools: dict) -> PlatformSettings:
        """Replace all three sections, creating the row on first write."""
        row = await self.get()
        if row is None:
            row = PlatformSettings()
            self.db.add(row)
        row.platform = platform
        row.user_management = user_management
        row.ai_tools = ai_tools
        await self.db.flush()
        await self.db.refresh(row)
        return row


def settings_to_dict(row: Optional[PlatformSettings]) -> dict:
    if row is None:
        return {"platform": {}, "userManagement": {}, "aiTools": {}, "updatedAt": None}
    return {
        "platform": row.platform or {},
        "userManagement": row.user_management or {},
        "aiTools": row.ai_tools or {},
        "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
    }
