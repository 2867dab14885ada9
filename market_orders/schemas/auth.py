"""
Market Orders — Auth Pydantic schemas
"""
from pydantic import BaseModel, EmailStr, Field

from market_orders.models.account import AccountRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field("", max_length=32)
    address: str = Field("", max_length=500)


class AccountResponse(BaseModel):
    id: str
    email: str
    name: str
    phone: str
    address: str
    role: AccountRole

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    account: AccountResponse
    linked_orders: int = 0


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    dependencies: dict[str, str]
