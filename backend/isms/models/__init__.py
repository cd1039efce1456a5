from .catalog import Category, Supplier, Product
from .inventory import StockMovement, StockCount, StockCountItem
from .sales import Sale, SaleItem, InstallmentPayment
from .returns import Return, ReturnItem
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .expenses import Expense
from .documents import DocumentSequence
from .auth import User, RolePermission, SessionToken
from .security import SecurityEvent
from .settings import ShopSettings

__all__ = [
    'Category', 'Supplier', 'Product',
    'StockMovement', 'StockCount', 'StockCountItem',
    'Sale', 'SaleItem', 'InstallmentPayment',
    'Return', 'ReturnItem',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Expense',
    'DocumentSequence',
    'User', 'RolePermission', 'SessionToken',
    'SecurityEvent',
    'ShopSettings',
]
