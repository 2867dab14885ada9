"""
Market Orders — Auth API routes
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from market_orders.api.deps import require_account
from market_orders.core.config import get_settings
from market_orders.core.security import create_access_token, hash_password, verify_password
from market_orders.db.database import get_db
from market_orders.models.account import Account, AccountRole
from market_orders.schemas.auth import (
    AccountResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from market_orders.services.reconciler import adopt_orphans

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(account: Account) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(account.id, account.role.value),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        account=AccountResponse.model_validate(account),
    )


async def _find_by_email(db: AsyncSession, email: str) -> Account | None:
    result = await db.execute(select(Account).where(func.lower(Account.email) == email.lower()))
    return result.scalars().first()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)):
    """Create a customer account and sign it in."""
    if await _find_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    account = Account(
        email=payload.email.lower(),
        hashed_password=hash_password(payload.password),
        name=payload.name,
        phone=payload.phone,
        address=payload.address,
        role=AccountRole.CUSTOMER,
    )
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered.")

    response = _token_response(account)
    response.linked_orders = await adopt_orphans(db, account)
    return response


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Validate credentials, issue a JWT and adopt guest orders placed with this email."""
    account = await _find_by_email(db, payload.email)

    if not account or not verify_password(payload.password, account.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Built before adoption: a failed link rolls the session back and expires the account
    response = _token_response(account)
    response.linked_orders = await adopt_orphans(db, account)
    if response.linked_orders:
        logger.info("Account %s adopted %d guest order(s) at login", response.account.id, response.linked_orders)
    return response


@router.get("/me", response_model=AccountResponse)
async def me(account: Account = Depends(require_account)):
    return account
