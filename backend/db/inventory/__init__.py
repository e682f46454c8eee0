"""
Stock core tables.

Models:
- Item (catalog entry; current_stock is a cached total)
- WarehouseStock (quantity per item per warehouse)
- LedgerEntry (append-only record of every quantity change)
- StockTransfer / StockTransferItem (warehouse-to-warehouse moves)
"""
