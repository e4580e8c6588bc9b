"""
tests/conftest.py

Shared record fixtures. Records are plain dicts, exactly as they arrive
from the ingestion layer.
"""

from __future__ import annotations

import pytest


@pytest.fixture()
def transactions() -> list[dict]:
    """Four customs declarations with mixed-language country and company names."""
    return [
        {
            "id": "1",
            "importCompanyName": "CÔNG TY ABC",
            "importCountry": "United States",
            "categoryName": "Electronics",
            "totalValueUSD": 50000,
            "date": "2024-01-15",
        },
        {
            "id": "2",
            "importCompanyName": "XYZ Corporation",
            "importCountry": "USA",
            "categoryName": "electronic devices",
            "totalValueUSD": 75000,
            "date": "2024-02-20",
        },
        {
            "id": "3",
            "importCompanyName": "DEF Import Ltd",
            "importCountry": "Vietnam",
            "categoryName": "Machinery",
            "totalValueUSD": 30000,
            "date": "2024-03-10",
        },
        {
            "id": "4",
            "importCompanyName": "Cty ABC",
            "importCountry": "Hoa Kỳ",
            "categoryName": "điện tử",
            "totalValueUSD": 45000,
            "date": "2024-01-25",
        },
    ]


@pytest.fixture()
def trade_records() -> list[dict]:
    """Five records keyed the way the aggregation cache reads them."""
    return [
        {
            "companyName": "ABC Corp",
            "categoryName": "Electronics",
            "importCountry": "United States",
            "totalValueUSD": 50000,
            "quantity": 100,
            "date": "2024-01-15",
        },
        {
            "companyName": "XYZ Ltd",
            "categoryName": "Machinery",
            "importCountry": "Vietnam",
            "totalValueUSD": 75000,
            "quantity": 50,
            "date": "2024-01-20",
        },
        {
            "companyName": "ABC Corp",
            "categoryName": "Electronics",
            "importCountry": "China",
            "totalValueUSD": 30000,
            "quantity": 60,
            "date": "2024-02-10",
        },
        {
            "companyName": "Global Inc",
            "categoryName": "Textiles",
            "importCountry": "United States",
            "totalValueUSD": 40000,
            "quantity": 200,
            "date": "2024-02-15",
        },
        {
            "companyName": "XYZ Ltd",
            "categoryName": "Machinery",
            "importCountry": "Japan",
            "totalValueUSD": 90000,
            "quantity": 30,
            "date": "2024-03-05",
        },
    ]
