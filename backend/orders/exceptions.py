from rest_framework import status
from rest_framework.exceptions import APIException


class OrderError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Order operation failed."
    default_code = "order_error"


class InvalidOrder(OrderError):
    """Order could not be created from the requested item/quantity"""
    default_code = "invalid_order"


class OrderNotFound(OrderError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Order not found."
    default_code = "order_not_found"


class InvalidTransition(OrderError):
    """Requested status is not reachable from the current one"""
    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_transition"

    def __init__(self, action, current_status, detail=None):
        self.action = action
        self.current_status = current_status
        if detail is None:
            detail = f"Cannot {action} an order that is {current_status}"
        super().__init__(detail)


class Unauthorized(OrderError):
    """Actor does not hold the role the transition requires"""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "unauthorized"

    def __init__(self, action, current_status, allowed_roles=(), detail=None):
        self.action = action
        self.current_status = current_status
        self.allowed_roles = tuple(allowed_roles)
        if detail is None:
            detail = f"Only the {' or '.join(sorted(self.allowed_roles))} can {action} this order"
        super().__init__(detail)
