from __future__ import annotations
from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from models.account import Account, anonymous_account
from services.database import get_db


# The acting account is named by a request header; there is no login flow.
# Put an authenticating proxy in front of the service before exposing it.
async def get_current_account(
    request: Request,
    x_account_id: Optional[int] = Header(None, description="Account to act as; anonymous if omitted"),
    db: AsyncSession = Depends(get_db),
) -> Account:
    if x_account_id is None:
        account = anonymous_account(settings.ANONYMOUS_PERMISSIONS)
    else:
        account = await db.get(Account, x_account_id)
        if account is None or not account.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Unknown or inactive account"
            )

    request.state.account = account
    structlog.contextvars.bind_contextvars(account_id=account.id)
    return account


def get_request_account(request: Request) -> Account:
    """Account stored by get_current_account, anonymous if it never ran."""
    account = getattr(request.state, "account", None)
    if account is None:
        account = anonymous_account(settings.ANONYMOUS_PERMISSIONS)
    return account


def require_permission(permission: str):
    async def checker(account: Account = Depends(get_current_account)) -> Account:
        if not account.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission '{permission}'"
            )
        return account
    return checker
