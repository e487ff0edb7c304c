# microshop/services/gateway/__init__.py
"""
API Gateway: единая точка входа, маршрутизация запросов к сервисам.
"""
