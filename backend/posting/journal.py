# posting/journal.py
"""
Daily sales journal construction.

Turns a SalesSummary and a PostingPolicy into the header and lines of one
journal_entry transaction. Every summarized amount appears exactly once
on each side, so the journal balances by construction, per currency:

    DR  sales_clearing   net receipts (revenue + VAT + tips - discounts)
    DR  discounts
        CR  service_revenue
        CR  product_revenue
        CR  vat_services
        CR  vat_products
        CR  tips

Zero amounts produce no line. Nothing here writes.
"""

from datetime import datetime, time

from posting.policy import SALES_CLEARING
from posting.summary import (
    DISCOUNTS,
    PRODUCT_REVENUE,
    SERVICE_REVENUE,
    TIPS,
    VAT_PRODUCTS,
    VAT_SERVICES,
    ZERO,
    organization_timezone,
)


JOURNAL_TRANSACTION_TYPE = "journal_entry"
JOURNAL_SMART_CODE = "HERA.FIN.GL.TXN.JOURNAL.DAILY_SALES.V1"
DEBIT_LINE_SMART_CODE = "HERA.FIN.GL.LINE.DAILY_SALES.DR.V1"
CREDIT_LINE_SMART_CODE = "HERA.FIN.GL.LINE.DAILY_SALES.CR.V1"
GL_LINE_TYPE = "gl"

DEBIT_CATEGORIES = (SALES_CLEARING, DISCOUNTS)
CREDIT_CATEGORIES = (SERVICE_REVENUE, PRODUCT_REVENUE, VAT_SERVICES, VAT_PRODUCTS, TIPS)

CATEGORY_LABELS = {
    SALES_CLEARING: "Sales clearing",
    DISCOUNTS: "Discounts given",
    SERVICE_REVENUE: "Service revenue",
    PRODUCT_REVENUE: "Product revenue",
    VAT_SERVICES: "VAT on services",
    VAT_PRODUCTS: "VAT on products",
    TIPS: "Tips payable",
}


class NegativeReceipts(ValueError):
    """Discounts exceed gross sales for a currency."""

    def __init__(self, currency, amount):
        self.currency = currency
        self.amount = amount
        super().__init__(f"Net receipts for {currency} are negative ({amount}).")


def journal_code(branch_id, business_date) -> str:
    """Natural key of a branch's daily journal; unique per organization."""
    return f"GLJ-{branch_id}-{business_date:%Y%m%d}"


def end_of_business_day(organization, business_date) -> datetime:
    """23:59:59.999999 local time of the business day."""
    return datetime.combine(business_date, time.max, tzinfo=organization_timezone(organization))


def category_amounts(summary, currency: str) -> dict:
    """Per-category journal amounts for one currency, sales_clearing included."""
    bucket = summary.totals[currency]
    net = summary.net_receipts(currency)
    if net < ZERO:
        raise NegativeReceipts(currency, net)
    amounts = {SALES_CLEARING: net}
    amounts.update({category: bucket[category] for category in DEBIT_CATEGORIES + CREDIT_CATEGORIES if category in bucket})
    return amounts


def build_journal_payload(summary, policy, organization, default_currency: str):
    """
    Build the journal header and lines for a summary.

    Args:
        summary: SalesSummary with at least one non-zero amount
        policy: PostingPolicy mapping every non-zero category
        organization: Organization the day belongs to
        default_currency: Header currency when the day spans several

    Returns:
        (header dict, lines list) in transaction store CREATE format

    Raises:
        NegativeReceipts: discounts exceed gross sales in a currency
    """
    currencies = summary.currencies
    header_currency = currencies[0] if len(currencies) == 1 else default_currency
    day = summary.business_date.isoformat()

    lines = []
    for currency in currencies:
        amounts = category_amounts(summary, currency)
        for side, categories in (("DR", DEBIT_CATEGORIES), ("CR", CREDIT_CATEGORIES)):
            for category in categories:
                amount = amounts.get(category, ZERO)
                if not amount:
                    continue
                line = {
                    "line_type": GL_LINE_TYPE,
                    "line_entity_id": policy.account_for(category),
                    "description": f"{CATEGORY_LABELS[category]} {day}",
                    "line_amount": str(amount),
                    "smart_code": DEBIT_LINE_SMART_CODE if side == "DR" else CREDIT_LINE_SMART_CODE,
                    "line_data": {"category": category, "currency": currency, "side": side},
                }
                if side == "DR":
                    line["debit_amount"] = str(amount)
                else:
                    line["credit_amount"] = str(amount)
                lines.append(line)

    header = {
        "transaction_type": JOURNAL_TRANSACTION_TYPE,
        "transaction_code": journal_code(summary.branch_id, summary.business_date),
        "transaction_date": end_of_business_day(organization, summary.business_date),
        "smart_code": JOURNAL_SMART_CODE,
        "source_entity_id": summary.branch_id,
        "transaction_status": "posted",
        "transaction_currency_code": header_currency,
        "metadata": {
            "posting_kind": "daily_sales",
            "branch_id": summary.branch_id,
            "business_date": day,
            "currencies": currencies,
            "source_transaction_ids": summary.transaction_ids,
            "source_transaction_count": summary.transaction_count,
            "policy_entity_id": policy.policy_entity_id,
            "policy_code": policy.policy_code,
        },
    }
    return header, lines
