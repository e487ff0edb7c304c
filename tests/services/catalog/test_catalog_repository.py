# tests/services/catalog/test_catalog_repository.py
"""
Тесты SQL-запросов репозитория каталога.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from microshop.services.catalog.repository import ProductRepository, like_pattern


class TestLikePattern:
    @pytest.mark.parametrize("value, expected", [
        ("кружка", "%кружка%"),
        ("100%", "%100\\%%"),
        ("mug_01", "%mug\\_01%"),
        ("a\\b", "%a\\\\b%"),
    ])
    def test_wildcards_escaped(self, value: str, expected: str) -> None:
        assert like_pattern(value) == expected


class TestListProducts:
    @pytest.mark.asyncio
    async def test_search_is_escaped(self, mock_db: AsyncMock) -> None:
        """% и _ из поиска не работают как шаблоны ILIKE."""
        mock_db.fetchval.return_value = 0
        repository = ProductRepository(mock_db)

        rows, total = await repository.list_products(limit=20, offset=0, search="50%_off")

        query, *args = mock_db.fetch.call_args.args
        assert args == ["%50\\%\\_off%", 20, 0]
        assert "ILIKE $1 ESCAPE '\\'" in query
        assert (rows, total) == ([], 0)

    @pytest.mark.asyncio
    async def test_filters_numbered_in_order(self, mock_db: AsyncMock) -> None:
        repository = ProductRepository(mock_db)

        await repository.list_products(limit=10, offset=30, category="mugs", search="red")

        count_query, *count_args = mock_db.fetchval.call_args.args
        assert count_args == ["mugs", "%red%"]
        assert "category = $1" in count_query
        assert "sku ILIKE $2 ESCAPE" in count_query
        assert "LIMIT $3 OFFSET $4" in mock_db.fetch.call_args.args[0]
