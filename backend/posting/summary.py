# posting/summary.py
"""
Daily sales summary.

Reads the committed sales of one branch for one business day and groups
their line amounts by posting category and currency. Pure read: nothing
here writes.

The business day is [00:00, 24:00) in the organization's timezone
(Organization.settings["timezone"], default HERA DEFAULT_TIMEZONE).
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tenancy.policies import scoped
from transactions.serializers import money
from universal.conf import hera_setting
from universal.models import Transaction


SERVICE_REVENUE = "service_revenue"
PRODUCT_REVENUE = "product_revenue"
VAT_SERVICES = "vat_services"
VAT_PRODUCTS = "vat_products"
TIPS = "tips"
DISCOUNTS = "discounts"

CATEGORIES = (SERVICE_REVENUE, PRODUCT_REVENUE, VAT_SERVICES, VAT_PRODUCTS, TIPS, DISCOUNTS)

LINE_TYPE_CATEGORIES = {
    "service": SERVICE_REVENUE,
    "product": PRODUCT_REVENUE,
    "retail": PRODUCT_REVENUE,
    "tip": TIPS,
    "gratuity": TIPS,
    "discount": DISCOUNTS,
}
TAX_LINE_TYPES = {"tax", "vat"}
PRODUCT_TAX_BASES = {"product", "products", "retail"}

ZERO = Decimal("0.00")


class InvalidTimezone(ValueError):
    pass


def organization_timezone(organization) -> ZoneInfo:
    name = (organization.settings or {}).get("timezone") or hera_setting("DEFAULT_TIMEZONE")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimezone(f"Unknown timezone '{name}' for organization {organization.organization_code}.")


def business_day_window(organization, business_date: date):
    """[start, end) of a business day as aware datetimes."""
    tz = organization_timezone(organization)
    start = datetime.combine(business_date, time.min, tzinfo=tz)
    end = datetime.combine(business_date + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def categorize_line(line):
    """
    Map a sales line to (category, amount), or None for lines that do not post
    (payments, notes, ...).
    """
    line_type = (line.line_type or "").strip().lower()
    amount = line.line_amount or ZERO

    if line_type in TAX_LINE_TYPES:
        basis = str((line.line_data or {}).get("tax_basis", "service")).lower()
        return (VAT_PRODUCTS if basis in PRODUCT_TAX_BASES else VAT_SERVICES), amount

    category = LINE_TYPE_CATEGORIES.get(line_type)
    if category is None:
        return None
    if category == DISCOUNTS:
        amount = abs(amount)
    return category, amount


@dataclass
class SalesSummary:
    organization_id: str
    branch_id: str
    business_date: date
    window_start: datetime
    window_end: datetime
    totals: dict = field(default_factory=dict)
    transaction_ids: list = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.transaction_ids)

    @property
    def currencies(self) -> list:
        return sorted(self.totals)

    def add(self, currency: str, category: str, amount: Decimal) -> None:
        bucket = self.totals.setdefault(currency, {c: ZERO for c in CATEGORIES})
        bucket[category] = money(bucket[category] + amount)

    def net_receipts(self, currency: str) -> Decimal:
        """What was collected: revenue + VAT + tips - discounts."""
        bucket = self.totals[currency]
        gross = sum((bucket[c] for c in CATEGORIES if c != DISCOUNTS), start=ZERO)
        return money(gross - bucket[DISCOUNTS])

    @property
    def is_empty(self) -> bool:
        if not self.transaction_ids:
            return True
        return all(amount == ZERO for bucket in self.totals.values() for amount in bucket.values())

    def to_dict(self) -> dict:
        return {
            "organization_id": self.organization_id,
            "branch_id": self.branch_id,
            "business_date": self.business_date.isoformat(),
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "transaction_count": self.transaction_count,
            "transaction_ids": self.transaction_ids,
            "totals": {
                currency: {category: str(amount) for category, amount in bucket.items()}
                for currency, bucket in sorted(self.totals.items())
            },
        }


def summarize_sales_day(actor, branch_id, business_date: date) -> SalesSummary:
    """
    Summarize one branch's committed sales for one business day.

    A sale belongs to a branch through metadata.branch_id. Only
    SALES_TRANSACTION_TYPES in POSTABLE_SALE_STATUSES are read.

    Raises:
        InvalidTimezone: the organization's timezone setting is unknown
    """
    start, end = business_day_window(actor.organization, business_date)
    summary = SalesSummary(
        organization_id=str(actor.organization_id),
        branch_id=str(branch_id),
        business_date=business_date,
        window_start=start,
        window_end=end,
    )

    sales = (
        scoped(Transaction.objects.all(), actor)
        .filter(
            transaction_type__in=[t.lower() for t in hera_setting("SALES_TRANSACTION_TYPES")],
            transaction_status__in=list(hera_setting("POSTABLE_SALE_STATUSES")),
            metadata__branch_id=str(branch_id),
            transaction_date__gte=start,
            transaction_date__lt=end,
        )
        .prefetch_related("lines")
        .order_by("transaction_date", "id")
    )

    for sale in sales:
        summary.transaction_ids.append(str(sale.id))
        currency = sale.transaction_currency_code
        summary.totals.setdefault(currency, {c: ZERO for c in CATEGORIES})
        for line in sale.lines.all():
            categorized = categorize_line(line)
            if categorized is not None:
                summary.add(currency, *categorized)

    return summary
