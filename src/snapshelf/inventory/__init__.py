"""Inventory identity resolution: canonical keys and merge policy."""
