# microshop/services/payments/__init__.py
"""
Payment Service: платежи по заказам и возвраты.
"""
