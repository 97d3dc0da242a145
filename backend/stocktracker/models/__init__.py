from .inventory import Product, InventoryTransaction, TRANSACTION_TYPES
from .auth import User, SessionToken, ROLES

__all__ = [
    'Product', 'InventoryTransaction', 'TRANSACTION_TYPES',
    'User', 'SessionToken', 'ROLES',
]
