from .catalog import Store, Product, Batch, Customer, Supplier, Employee, PaymentMethod
from .stock import StockRecord, StockMovement, StockAdjustment, StockTransfer
from .transactions import (
    Purchase, PurchaseLine, Sale, SaleLine,
    PurchaseReturn, PurchaseReturnLine, SaleReturn, SaleReturnLine,
)

__all__ = [
    'Store', 'Product', 'Batch', 'Customer', 'Supplier', 'Employee', 'PaymentMethod',
    'StockRecord', 'StockMovement', 'StockAdjustment', 'StockTransfer',
    'Purchase', 'PurchaseLine', 'Sale', 'SaleLine',
    'PurchaseReturn', 'PurchaseReturnLine', 'SaleReturn', 'SaleReturnLine',
]
