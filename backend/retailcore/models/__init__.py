from .catalog import Product, Staff
from .sales import SaleTransaction, TransactionStatus, SALE_TX_RANGE_INDEX
from .aggregates import DailySalesSummary, DailyStaffSales, DailyProductSales, product_day_key
from .ledger import MonthlyStockLedger, ledger_key, grams_to_kg
from .targets import MonthlyTarget

__all__ = [
    'Product', 'Staff',
    'SaleTransaction', 'TransactionStatus', 'SALE_TX_RANGE_INDEX',
    'DailySalesSummary', 'DailyStaffSales', 'DailyProductSales', 'product_day_key',
    'MonthlyStockLedger', 'ledger_key', 'grams_to_kg',
    'MonthlyTarget',
]
