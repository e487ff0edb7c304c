# microshop/services/catalog/__init__.py
"""
Catalog Service: товары, цены, поиск.
"""
