# microshop/services/orders/__init__.py
"""
Order Service: оформление заказов и их жизненный цикл.
"""
