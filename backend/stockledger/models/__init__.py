from .catalog import Product
from .parties import Salesman, Shop
from .stock import (
    StockAccount,
    SalesmanStockAccount,
    StockTransaction,
    StockAlert,
    TransactionType,
    LocationType,
    StockTransactionImmutableError,
)
from .documents import Distribution, DistributionItem, Order, OrderItem, Return, ReturnItem

__all__ = [
    'Product',
    'Salesman', 'Shop',
    'StockAccount', 'SalesmanStockAccount', 'StockTransaction', 'StockAlert',
    'TransactionType', 'LocationType', 'StockTransactionImmutableError',
    'Distribution', 'DistributionItem', 'Order', 'OrderItem', 'Return', 'ReturnItem',
]
