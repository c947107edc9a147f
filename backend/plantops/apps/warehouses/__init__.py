"""
Warehouse directory.

Warehouses are plots of type ``storage`` or ``warehouse``; the inventory
core only asks whether a location can hold stock.
"""
