from .inventory import Product
from .sales import SaleRecord
from .customers import Customer
from .auth import User, UserRole, SessionToken
from .security import SecurityEvent

__all__ = [
    'Product',
    'SaleRecord',
    'Customer',
    'User', 'UserRole', 'SessionToken',
    'SecurityEvent',
]
