"""
Market Orders — Access control gate

Decides who may read an order and who may change its status. The caller is
resolved once per request from the verified JWT claims and the account row.
"""
from dataclasses import dataclass

from market_orders.models.account import Account, AccountRole
from market_orders.models.order import Order


@dataclass(frozen=True)
class CallerContext:
    account_id: str | None = None
    role: AccountRole | None = None
    email: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN

    @classmethod
    def anonymous(cls) -> "CallerContext":
        return cls()

    @classmethod
    def for_account(cls, account: Account) -> "CallerContext":
        return cls(account_id=account.id, role=account.role, email=account.email)


def can_read(order: Order, caller: CallerContext) -> bool:
    if caller.is_admin:
        return True
    if not caller.is_authenticated or not caller.email:
        return False
    return order.email.lower() == caller.email.lower()


def can_write_status(caller: CallerContext) -> bool:
    return caller.is_admin
