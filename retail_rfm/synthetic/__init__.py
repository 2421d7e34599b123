"""Synthetic raw retail data for demos and tests.

The generator produces Online-Retail-shaped line items, including a
controlled share of rows the cleaner must reject, without touching real
customer data.
"""

from .generator import (
    CLEAN_SCENARIO,
    Customer,
    RetailScenario,
    generate_customers,
    generate_raw_transactions,
    generate_transactions,
)

__all__ = [
    "CLEAN_SCENARIO",
    "Customer",
    "RetailScenario",
    "generate_customers",
    "generate_raw_transactions",
    "generate_transactions",
]
