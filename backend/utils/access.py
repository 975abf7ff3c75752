# backend/utils/access.py
# Ownership predicates shared by every entry point that reads or mutates an order.
from models.users import User, UserRole
from models.order import Order
from utils.errors import AuthorizationError

# Actions each role may apply to an order it owns
ALLOWED_ACTIONS = {
    UserRole.BUSINESS: {"process", "complete", "cancel"},
    UserRole.CUSTOMER: {"cancel"},
}


def owns_order(user: User, order: Order) -> bool:
    if user.role == UserRole.CUSTOMER:
        return order.customer_id == user.id
    if user.role == UserRole.BUSINESS:
        return order.store is not None and order.store.business_id == user.id
    return False


def ensure_can_transition(user: User, order: Order, action: str) -> None:
    if not owns_order(user, order):
        raise AuthorizationError("You do not own this order")
    if action not in ALLOWED_ACTIONS.get(user.role, set()):
        raise AuthorizationError(f"Role {user.role.value} may not {action} orders")
