# microshop/shared/__init__.py
"""
Общие DTO и схемы событий, используемые всеми сервисами.
"""
