from .tenancy import Enterprise
from .auth import User, SessionToken
from .inventory import Supplier, Product, StockMovement
from .customers import Client
from .sales import Sale, SaleItem, Budget

__all__ = [
    'Enterprise',
    'User', 'SessionToken',
    'Supplier', 'Product', 'StockMovement',
    'Client',
    'Sale', 'SaleItem', 'Budget',
]
