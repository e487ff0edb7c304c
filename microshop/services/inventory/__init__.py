# microshop/services/inventory/__init__.py
"""
Inventory Service: остатки, резервы под заказы.
"""
