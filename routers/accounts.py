from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

import structlog

from services.database import get_db
from models.account import (
    Account,
    AccountCreate,
    AccountRead,
)
from utils.auth import require_permission

logger = structlog.get_logger(__name__)


router = APIRouter(
    prefix="/admin/accounts",
    tags=["Accounts"],
    dependencies=[Depends(require_permission("administer users"))],
)


# -----------------------------------------------------------------------------
# POST Endpoint
# -----------------------------------------------------------------------------

@router.post("/", response_model=AccountRead, status_code=201, name="create_account")
async def create_account(
    account: AccountCreate,
    db: AsyncSession = Depends(get_db)
):
    existing = await db.scalar(select(Account.id).where(Account.name == account.name))
    if existing is not None:
        raise HTTPException(status_code=409, detail=f"Account '{account.name}' already exists")

    db_account = Account(
        name=account.name,
        permissions=account.permissions,
        is_admin=account.is_admin,
    )
    db.add(db_account)
    await db.commit()
    await db.refresh(db_account)

    logger.info("account_created", account_id=db_account.id, is_admin=db_account.is_admin)
    return AccountRead.model_validate(db_account)

# -----------------------------------------------------------------------------
# GET Endpoints
# -----------------------------------------------------------------------------

@router.get("/", response_model=List[AccountRead], status_code=200, name="list_accounts")
async def list_accounts(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of records to return"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    db: AsyncSession = Depends(get_db)
):
    query = select(Account)
    if is_active is not None:
        query = query.where(Account.is_active == is_active)

    query = query.order_by(Account.id).offset(skip).limit(limit)

    result = await db.execute(query)
    return [AccountRead.model_validate(a) for a in result.scalars().all()]


@router.get("/{account_id}", response_model=AccountRead, status_code=200, name="get_account")
async def get_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    account = await db.get(Account, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return AccountRead.model_validate(account)

# -----------------------------------------------------------------------------
# DELETE Endpoint
# -----------------------------------------------------------------------------

@router.delete("/{account_id}", status_code=204, name="delete_account")
async def delete_account(
    account_id: int,
    db: AsyncSession = Depends(get_db)
):
    """Deactivate an account; its id keeps owning content."""
    account = await db.get(Account, account_id)
    if account is None or not account.is_active:
        raise HTTPException(status_code=404, detail="Account not found or already inactive")

    account.is_active = False
    await db.commit()
