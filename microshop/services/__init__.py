# microshop/services/__init__.py
"""
Микросервисы магазина: catalog, cart, orders, payments, inventory,
discovery и API gateway.
"""
