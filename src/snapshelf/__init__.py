"""
SnapShelf fridge inventory package.

The package turns fridge photos into a reconciled inventory and compares that inventory
against the household grocery list and recipe catalog.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
