from .auth import User, SessionToken
from .catalog import Product, InventoryRecord
from .ledger import Sale, StockMovement
from .alerts import Alert

__all__ = [
    'User', 'SessionToken',
    'Product', 'InventoryRecord',
    'Sale', 'StockMovement',
    'Alert',
]
