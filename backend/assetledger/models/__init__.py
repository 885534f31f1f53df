from .offices import Office, Inventory
from .catalog import Category, Unit, Item
from .instances import ItemInstance
from .purchases import Purchase, PurchaseItem
from .transactions import ItemTransaction
from .requests import ItemRequest
from .auth import User, Role, SessionToken

__all__ = [
    'Office', 'Inventory',
    'Category', 'Unit', 'Item',
    'ItemInstance',
    'Purchase', 'PurchaseItem',
    'ItemTransaction',
    'ItemRequest',
    'User', 'Role', 'SessionToken',
]
