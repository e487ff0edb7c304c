# microshop/common/__init__.py
"""
Общие утилиты, константы и логгер.
"""

from microshop.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from microshop.common.constants import TypeMsg, ServiceName

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
    "ServiceName",
]
