"""
Human-readable category labels for normalized events.

Lookup order: explicit category hint, then declared type, then hints in the
source name, then ``Uncategorized``. Labels are reporting metadata only and
never influence the intent.
"""

from __future__ import annotations

UNCATEGORIZED = "Uncategorized"

CATEGORY_MAPPINGS: dict[str, str] = {
    # Revenue
    "sale": "Sales",
    "order": "Sales",
    "subscription": "Subscription Revenue",
    # Cost
    "shipping": "Shipping & Delivery",
    "delivery": "Shipping & Delivery",
    "marketing": "Marketing",
    "ads": "Advertising",
    "advertising": "Advertising",
    "ad": "Advertising",
    "fee": "Platform Fees",
    "commission": "Platform Fees",
    "salary": "Payroll",
    "rent": "Rent & Utilities",
    "utility": "Rent & Utilities",
    "cogs": "Cost of Goods Sold",
    "refund": "Refunds & Returns",
    # Wallet
    "deposit": "Deposits",
    "withdrawal": "Withdrawals",
    "transfer": "Transfers",
    "payout": "Payouts",
    "unknown": UNCATEGORIZED,
}

_SOURCE_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("shipping", "aramex", "fedex", "dhl", "bosta"), "Shipping & Delivery"),
    (("facebook", "google", "tiktok", "snapchat"), "Advertising"),
)

_SOURCE_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("shopify", "woocommerce", "salla", "zid", "amazon", "noon"), "ecommerce"),
    (("aramex", "fedex", "dhl", "bosta"), "shipping"),
    (("paypal", "stripe", "paymob", "fawry"), "wallet"),
    (("manual", "excel", "csv"), "manual"),
)


def categorize(category: str | None, record_type: str | None, source: str) -> str:
    """Reporting label for a record's category/type/source hints."""
    for hint in (category, record_type):
        if hint:
            label = CATEGORY_MAPPINGS.get(hint.strip().lower())
            if label:
                return label

    lowered = source.lower()
    for needles, label in _SOURCE_HINTS:
        if any(needle in lowered for needle in needles):
            return label
    return UNCATEGORIZED


def source_type(source: str) -> str:
    """Coarse family of the originating system (ecommerce, shipping, ...)."""
    lowered = source.lower()
    for needles, family in _SOURCE_TYPES:
        if any(needle in lowered for needle in needles):
            return family
    return "unknown"
