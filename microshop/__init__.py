# microshop/__init__.py
"""
microshop: интернет-магазин на микросервисах.
"""

__version__ = "1.0.0"
