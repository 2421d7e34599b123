"""Transaction records flowing through the cleaning and RFM pipeline.

Three shapes of the same line item exist:

- :class:`Transaction` is a raw row exactly as it arrives from the source,
  with no guarantees about its contents.
- :class:`CleanTransaction` is a row known to satisfy every validity rule
  (customer present, positive quantity and price, parseable timestamp).
- :class:`BusinessTransaction` is a clean row annotated with its revenue.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

#: Source format of ``InvoiceDate`` values, e.g. ``12/1/2010 8:26``.
INVOICE_TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M"

# Raw column name -> model field. Accepts both the Online Retail export
# headers and the snake_case field names.
COLUMN_ALIASES: dict[str, str] = {
    "InvoiceNo": "invoice_id",
    "Invoice": "invoice_id",
    "StockCode": "stock_code",
    "Description": "description",
    "Quantity": "quantity",
    "InvoiceDate": "invoice_timestamp",
    "UnitPrice": "unit_price",
    "Price": "unit_price",
    "CustomerID": "customer_id",
    "Customer ID": "customer_id",
    "Country": "country",
}

TRANSACTION_FIELDS = (
    "invoice_id",
    "stock_code",
    "description",
    "quantity",
    "invoice_timestamp",
    "unit_price",
    "customer_id",
    "country",
)


class MalformedTimestampError(ValueError):
    """Raised when an invoice timestamp does not match the source format."""


def parse_invoice_timestamp(value: str) -> datetime:
    """Parse an invoice timestamp in ``month/day/year hour:minute`` format.

    The hour field is on a 24-hour clock; no AM/PM marker is accepted.

    Raises
    ------
    MalformedTimestampError
        If ``value`` is not a string or does not match the format.

    Examples
    --------
    >>> parse_invoice_timestamp("1/10/2020 18:05")
    datetime.datetime(2020, 1, 10, 18, 5)
    """
    if not isinstance(value, str):
        raise MalformedTimestampError(
            f"Invoice timestamp must be a string, got {type(value).__name__}"
        )
    try:
        return datetime.strptime(value.strip(), INVOICE_TIMESTAMP_FORMAT)
    except ValueError as exc:
        raise MalformedTimestampError(
            f"Invoice timestamp {value!r} does not match {INVOICE_TIMESTAMP_FORMAT}"
        ) from exc


def format_invoice_timestamp(ts: datetime) -> str:
    """Render ``ts`` back into the source format without zero padding."""
    return f"{ts.month}/{ts.day}/{ts.year} {ts.hour}:{ts.minute:02d}"


def _to_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("quantity must be numeric, got bool")
    if isinstance(value, int):
        return value
    try:
        as_decimal = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"quantity is not numeric: {value!r}") from exc
    if not as_decimal.is_finite():
        raise ValueError(f"quantity is not numeric: {value!r}")
    if as_decimal != as_decimal.to_integral_value():
        raise ValueError(f"quantity must be a whole number: {value!r}")
    return int(as_decimal)


def _to_price(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("unit_price must be numeric, got bool")
    if isinstance(value, Decimal):
        price = value
    else:
        try:
            # str() first so floats keep their printed value (5.1 -> 5.1, not 5.0999...)
            price = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"unit_price is not numeric: {value!r}") from exc
    if not price.is_finite():
        raise ValueError(f"unit_price is not numeric: {value!r}")
    return price


def _to_customer_id(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float):
        # pandas reads integer-looking ids with gaps as floats (17850.0)
        if value != value:  # NaN
            return None
        if value.is_integer():
            return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Transaction:
    """One raw line item of a retail invoice.

    Attributes
    ----------
    invoice_id:
        Invoice number. Several line items may share one invoice.
    stock_code:
        Product code; may also denote postage or manual adjustments.
    description:
        Free-text product label.
    quantity:
        Units purchased. Negative values denote returns.
    invoice_timestamp:
        Raw timestamp string in ``month/day/year hour:minute`` format.
    unit_price:
        Price per unit. Zero or negative in some raw rows.
    customer_id:
        Customer identifier; ``None``, empty or blank in some raw rows.
    country:
        Customer country.
    """

    invoice_id: str
    stock_code: str
    description: str
    quantity: int
    invoice_timestamp: str
    unit_price: Decimal
    customer_id: str | None
    country: str

    def __post_init__(self) -> None:
        """Normalise quantity to int and unit_price to Decimal."""
        try:
            object.__setattr__(self, "quantity", _to_quantity(self.quantity))
            object.__setattr__(self, "unit_price", _to_price(self.unit_price))
        except (TypeError, ValueError) as exc:
            raise type(exc)(f"{exc} (invoice_id={self.invoice_id})") from exc

    @classmethod
    def from_mapping(
        cls, record: Mapping[str, Any], *, index: int | None = None
    ) -> "Transaction":
        """Build a transaction from a raw row.

        Keys may be the model field names or the Online Retail column names
        (``InvoiceNo``, ``UnitPrice``...). Missing text fields default to an
        empty string and a missing customer id to ``None``; quantity, unit
        price and timestamp are required.

        Raises
        ------
        ValueError
            If a required field is missing or quantity/unit_price is not
            numeric. The row ``index`` is included in the message when given.
        """
        data: dict[str, Any] = {}
        for key, value in record.items():
            data[COLUMN_ALIASES.get(key, key)] = value

        location = f" (row {index})" if index is not None else ""
        missing = [
            name
            for name in ("quantity", "unit_price", "invoice_timestamp")
            if data.get(name) is None
        ]
        if missing:
            raise ValueError(f"Transaction missing required fields {missing}{location}")

        try:
            quantity = _to_quantity(data["quantity"])
            unit_price = _to_price(data["unit_price"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{exc}{location}") from exc

        return cls(
            invoice_id=str(data.get("invoice_id") or ""),
            stock_code=str(data.get("stock_code") or ""),
            description=str(data.get("description") or ""),
            quantity=quantity,
            invoice_timestamp=str(data["invoice_timestamp"]),
            unit_price=unit_price,
            customer_id=_to_customer_id(data.get("customer_id")),
            country=str(data.get("country") or ""),
        )

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in TRANSACTION_FIELDS}


@dataclass(frozen=True)
class CleanTransaction(Transaction):
    """A transaction that satisfies every validity rule.

    ``customer_id`` is stored trimmed and ``invoice_ts`` holds the parsed
    timestamp so later stages never re-parse the raw string.
    """

    invoice_ts: datetime

    def __post_init__(self) -> None:
        """Reject instances that break a validity invariant."""
        super().__post_init__()
        if self.customer_id is None or not self.customer_id.strip():
            raise ValueError(f"customer_id is required (invoice_id={self.invoice_id})")
        if self.customer_id != self.customer_id.strip():
            raise ValueError(
                f"customer_id must be trimmed: {self.customer_id!r} (invoice_id={self.invoice_id})"
            )
        if self.quantity <= 0:
            raise ValueError(
                f"Quantity must be positive: {self.quantity} (invoice_id={self.invoice_id})"
            )
        if self.unit_price <= 0:
            raise ValueError(
                f"Unit price must be positive: {self.unit_price} (invoice_id={self.invoice_id})"
            )

    @classmethod
    def from_transaction(
        cls, transaction: Transaction, invoice_ts: datetime
    ) -> "CleanTransaction":
        return cls(
            invoice_id=transaction.invoice_id,
            stock_code=transaction.stock_code,
            description=transaction.description,
            quantity=transaction.quantity,
            invoice_timestamp=transaction.invoice_timestamp,
            unit_price=transaction.unit_price,
            customer_id=(transaction.customer_id or "").strip(),
            country=transaction.country,
            invoice_ts=invoice_ts,
        )


@dataclass(frozen=True)
class BusinessTransaction(CleanTransaction):
    """A clean transaction annotated with ``revenue = quantity * unit_price``."""

    revenue: Decimal

    def __post_init__(self) -> None:
        super().__post_init__()
        if not isinstance(self.revenue, Decimal):
            object.__setattr__(self, "revenue", Decimal(str(self.revenue)))
        expected = self.quantity * self.unit_price
        if self.revenue != expected:
            raise ValueError(
                f"Revenue ({self.revenue}) != quantity * unit_price ({expected}) "
                f"(invoice_id={self.invoice_id})"
            )
