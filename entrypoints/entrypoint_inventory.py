#!/usr/bin/env python3
"""
Entrypoint для Inventory Service.

Запуск:
    python entrypoints/entrypoint_inventory.py
"""

import os
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

os.environ.setdefault("SERVICE_NAME", "inventory")

import uvicorn

from microshop.config import settings


def main() -> None:
    """Запустить Inventory Service."""
    _, port = settings.deployment.service_address("inventory")

    uvicorn.run(
        "microshop.services.inventory.app:app",
        host="0.0.0.0",
        port=port,
        reload=settings.system.DEBUG,
        log_level=settings.system.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
