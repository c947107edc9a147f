"""
Inventory stock ledger.

Items are registered in the catalog, received into warehouses as
cost-bearing lots, drained through an append-only movement ledger and
consumed by stock requests raised against work orders
(pending -> approved -> fulfilled, or rejected).
"""
