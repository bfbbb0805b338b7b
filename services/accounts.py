from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.account import Account

logger = structlog.get_logger(__name__)


async def ensure_admin_account(db: AsyncSession) -> None:
    """Create the administrator account on an empty accounts table."""
    count = await db.scalar(select(func.count()).select_from(Account))
    if count:
        return

    db.add(Account(name="admin", permissions=[], is_admin=True))
    await db.commit()
    logger.warning("admin_account_created", name="admin")
