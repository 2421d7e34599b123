from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
import math
import random
from typing import List, Optional, Sequence

from retail_rfm.foundation.transactions import Transaction, format_invoice_timestamp

DEFAULT_COUNTRIES = (
    "United Kingdom",
    "United Kingdom",
    "United Kingdom",
    "Germany",
    "France",
    "EIRE",
    "Spain",
    "Netherlands",
)

DEFAULT_CATALOG = (
    ("85123A", "WHITE HANGING HEART T-LIGHT HOLDER"),
    ("71053", "WHITE METAL LANTERN"),
    ("84406B", "CREAM CUPID HEARTS COAT HANGER"),
    ("22423", "REGENCY CAKESTAND 3 TIER"),
    ("85099B", "JUMBO BAG RED RETROSPOT"),
    ("47566", "PARTY BUNTING"),
    ("84879", "ASSORTED COLOUR BIRD ORNAMENT"),
    ("22720", "SET OF 3 CAKE TINS PANTRY DESIGN"),
    ("21212", "PACK OF 72 RETROSPOT CAKE CASES"),
    ("POST", "POSTAGE"),
)


@dataclass(frozen=True)
class Customer:
    customer_id: str
    country: str
    acquisition_date: date


@dataclass(frozen=True)
class RetailScenario:
    """Configuration for the raw transaction generator.

    Attributes
    ----------
    base_invoices_per_month: Average invoices per active customer per month.
    max_lines_per_invoice: Upper bound of line items sampled per invoice.
    mean_unit_price: Average item price used to sample line items.
    price_variability: Coefficient in (0, 1] controlling price variance.
    quantity_mean: Average quantity per line item.
    return_rate: Share of lines turned into returns (negative quantity).
    missing_customer_rate: Share of lines with a null, empty or blank customer id.
    zero_price_rate: Share of lines with a zero unit price.
    malformed_timestamp_rate: Share of lines with an unparseable timestamp.
    seed: Optional RNG seed for reproducibility.
    """

    base_invoices_per_month: float = 1.0
    max_lines_per_invoice: int = 4
    mean_unit_price: float = 4.0
    price_variability: float = 0.6
    quantity_mean: float = 6.0
    return_rate: float = 0.02
    missing_customer_rate: float = 0.05
    zero_price_rate: float = 0.01
    malformed_timestamp_rate: float = 0.01
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        dirty = (
            self.return_rate
            + self.missing_customer_rate
            + self.zero_price_rate
            + self.malformed_timestamp_rate
        )
        for name in (
            "return_rate",
            "missing_customer_rate",
            "zero_price_rate",
            "malformed_timestamp_rate",
        ):
            if not 0 <= getattr(self, name) <= 1:
                raise ValueError(f"{name} must be within [0, 1]: {getattr(self, name)}")
        if dirty > 1:
            raise ValueError(f"Combined dirty-row rates cannot exceed 1: {dirty}")
        if self.max_lines_per_invoice < 1:
            raise ValueError(
                f"max_lines_per_invoice must be at least 1: {self.max_lines_per_invoice}"
            )


CLEAN_SCENARIO = RetailScenario(
    return_rate=0.0,
    missing_customer_rate=0.0,
    zero_price_rate=0.0,
    malformed_timestamp_rate=0.0,
)


def _month_range(start: date, end: date) -> List[date]:
    cur = date(start.year, start.month, 1)
    last = date(end.year, end.month, 1)
    out: List[date] = []
    while cur <= last:
        out.append(cur)
        if cur.month == 12:
            cur = date(cur.year + 1, 1, 1)
        else:
            cur = date(cur.year, cur.month + 1, 1)
    return out


def generate_customers(
    n: int,
    start: date,
    end: date,
    *,
    countries: Sequence[str] = DEFAULT_COUNTRIES,
    seed: Optional[int] = None,
) -> List[Customer]:
    """Generate ``n`` customers with acquisition dates uniformly between start/end.

    Customer ids follow the five-digit numeric style of the Online Retail data.
    """

    if n <= 0:
        return []
    if start > end:
        raise ValueError("start date must be <= end date")

    rng = random.Random(seed)
    total_days = (end - start).days + 1

    customers: List[Customer] = []
    for i in range(n):
        offset = rng.randrange(total_days)
        customers.append(
            Customer(
                customer_id=str(12346 + i),
                country=rng.choice(list(countries)),
                acquisition_date=start + timedelta(days=offset),
            )
        )
    return customers


def _invoices_for_customer_month(rng: random.Random, lam: float) -> int:
    # Poisson draw via Knuth's algorithm; lambdas here are small
    if lam <= 0:
        return 0
    L = math.exp(-lam)
    k = 0
    p = 1.0
    while p > L:
        k += 1
        p *= rng.random()
    return max(0, k - 1)


def _sample_price(rng: random.Random, mean: float, variability: float) -> Decimal:
    variability = min(max(variability, 0.01), 1.0)
    sigma = variability
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    price = math.exp(rng.normalvariate(mu, sigma))
    return Decimal(str(round(max(price, 0.01), 2)))


def _sample_quantity(rng: random.Random, mean_q: float) -> int:
    q = max(1.0, rng.lognormvariate(mu=math.log(max(mean_q, 0.1)), sigma=0.7))
    return max(1, int(round(q)))


def _dirty_line(
    rng: random.Random, line: Transaction, scenario: RetailScenario
) -> Transaction:
    """Apply at most one data-quality defect to ``line``."""
    roll = rng.random()
    threshold = scenario.return_rate
    if roll < threshold:
        # Returns are booked on a "C"-prefixed credit invoice
        return replace(
            line, invoice_id=f"C{line.invoice_id}", quantity=-line.quantity
        )
    threshold += scenario.missing_customer_rate
    if roll < threshold:
        return replace(line, customer_id=rng.choice([None, "", "   "]))
    threshold += scenario.zero_price_rate
    if roll < threshold:
        return replace(line, unit_price=Decimal("0"))
    threshold += scenario.malformed_timestamp_rate
    if roll < threshold:
        # dashes instead of slashes, e.g. 1-5-2011 10:00
        return replace(
            line, invoice_timestamp=line.invoice_timestamp.replace("/", "-")
        )
    return line


def generate_transactions(
    customers: Sequence[Customer],
    start: date,
    end: date,
    *,
    scenario: Optional[RetailScenario] = None,
    catalog: Optional[Sequence[tuple[str, str]]] = None,
) -> List[Transaction]:
    """Generate raw line items for ``customers`` between ``start`` and ``end``.

    Each active customer places a Poisson number of invoices per month, each
    with one to ``max_lines_per_invoice`` line items. A share of lines is then
    made dirty according to the scenario rates so that cleaning has work to do.
    """

    if start > end:
        raise ValueError("start date must be <= end date")
    scenario = scenario or RetailScenario()
    rng = random.Random(scenario.seed)
    products = list(catalog) if catalog else list(DEFAULT_CATALOG)

    transactions: List[Transaction] = []
    invoice_seq = 536365

    for month_start in _month_range(start, end):
        for cust in customers:
            if cust.acquisition_date > end:
                continue
            num_invoices = _invoices_for_customer_month(
                rng, scenario.base_invoices_per_month
            )
            for _ in range(num_invoices):
                ts = datetime(
                    month_start.year,
                    month_start.month,
                    1 + rng.randrange(28),
                    8 + rng.randrange(0, 12),
                    rng.randrange(0, 60),
                )
                if ts.date() < max(start, cust.acquisition_date) or ts.date() > end:
                    continue
                invoice_id = str(invoice_seq)
                invoice_seq += 1

                for _line in range(1 + rng.randrange(scenario.max_lines_per_invoice)):
                    stock_code, description = rng.choice(products)
                    line = Transaction(
                        invoice_id=invoice_id,
                        stock_code=stock_code,
                        description=description,
                        quantity=_sample_quantity(rng, scenario.quantity_mean),
                        invoice_timestamp=format_invoice_timestamp(ts),
                        unit_price=_sample_price(
                            rng, scenario.mean_unit_price, scenario.price_variability
                        ),
                        customer_id=cust.customer_id,
                        country=cust.country,
                    )
                    transactions.append(_dirty_line(rng, line, scenario))

    return transactions


def generate_raw_transactions(
    n_customers: int,
    start: date,
    end: date,
    *,
    scenario: Optional[RetailScenario] = None,
) -> List[Transaction]:
    """Generate customers and their raw transactions in one call."""
    scenario = scenario or RetailScenario()
    customers = generate_customers(n_customers, start, end, seed=scenario.seed)
    return generate_transactions(customers, start, end, scenario=scenario)
