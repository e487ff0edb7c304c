# microshop/services/discovery/__init__.py
"""
Discovery Service: реестр экземпляров сервисов с lease в Redis.
"""
