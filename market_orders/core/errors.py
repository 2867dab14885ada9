"""
Market Orders — Error taxonomy

Only ValidationError, AuthenticationRequired, Forbidden and NotFound ever reach
an HTTP client. ChannelFailure and ReconciliationFailure stay inside their
stage: they are logged and recorded, never re-raised to the request.
"""


class OrderServiceError(Exception):
    """Base class for every error raised by the order pipeline."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(OrderServiceError):
    status_code = 400


class StatusTransitionError(ValidationError):
    """A status write that would move an order backwards."""

    status_code = 409


class AuthenticationRequired(OrderServiceError):
    status_code = 401


class Forbidden(OrderServiceError):
    status_code = 403


class NotFound(OrderServiceError):
    status_code = 404


class ChannelFailure(OrderServiceError):
    """A notification transport rejected or failed to deliver a message."""

    def __init__(self, channel: str, detail: str):
        super().__init__(f"{channel}: {detail}")
        self.channel = channel


class ReconciliationFailure(OrderServiceError):
    def __init__(self, order_id: str, detail: str):
        super().__init__(f"order {order_id}: {detail}")
        self.order_id = order_id
