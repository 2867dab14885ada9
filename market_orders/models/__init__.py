from market_orders.models.account import Account, AccountRole
from market_orders.models.order import DeliveryType, Order, OrderItem, OrderStatus

__all__ = ["Account", "AccountRole", "DeliveryType", "Order", "OrderItem", "OrderStatus"]
