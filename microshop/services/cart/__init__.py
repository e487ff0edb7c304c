# microshop/services/cart/__init__.py
"""
Cart Service: корзины покупателей (Redis).
"""
