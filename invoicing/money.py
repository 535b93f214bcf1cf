"""Price-inclusive GST, commission and rounding helpers.

Every amount handled here is a ``Decimal`` quantized to paise. Hammer prices
and charges are GST-inclusive, so tax is always backed out of the price
rather than added on top of it.
"""

from decimal import ROUND_HALF_UP, Decimal

MONEY_QUANT = Decimal("0.01")
RUPEE_QUANT = Decimal("1")
HUNDRED = Decimal("100")

DEFAULT_BUYER_COMMISSION_RATE = Decimal("12")
COMMISSION_CGST_RATE = Decimal("9")
COMMISSION_SGST_RATE = Decimal("9")


def to_money(value):
    return Decimal(str(value or 0)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_rate(value):
    return Decimal(str(value or 0)).quantize(MONEY_QUANT)


def reverse_gst(price_inclusive, rate_percent):
    price = to_money(price_inclusive)
    rate = Decimal(str(rate_percent or 0))
    if price < 0:
        raise ValueError(f"Price must not be negative, got {price}.")
    if rate < 0:
        raise ValueError(f"GST rate must not be negative, got {rate}.")

    if rate == 0:
        return {"base": price, "gst": Decimal("0.00")}

    base = to_money(price / (1 + rate / HUNDRED))
    return {"base": base, "gst": price - base}


def aggregate_by_rate(items):
    """Group ``base``/``gst`` sums by GST rate, keyed in first-seen order."""
    summary = {}
    for item in items:
        rate = to_rate(item["gst_rate"])
        bucket = summary.setdefault(rate, {"value": Decimal("0.00"), "amount": Decimal("0.00")})
        bucket["value"] += item["base"]
        bucket["amount"] += item["gst"]
    return summary


def round_total(value):
    exact = to_money(value)
    total_payable = exact.quantize(RUPEE_QUANT, rounding=ROUND_HALF_UP)
    return {
        "round_off": total_payable - exact,
        "total_payable": int(total_payable),
    }


def commission_for(invoice_date, cutoff_date, global_rate, buyer_rate=None):
    if cutoff_date is not None and invoice_date >= cutoff_date:
        return Decimal(str(global_rate))
    if buyer_rate in (None, ""):
        return DEFAULT_BUYER_COMMISSION_RATE
    return Decimal(str(buyer_rate))


def commission_breakdown(hammer_total, rate):
    # Shown on the printed document only; never part of totalPayable.
    commission = to_money(Decimal(str(hammer_total)) * Decimal(str(rate)) / HUNDRED)
    cgst = to_money(commission * COMMISSION_CGST_RATE / HUNDRED)
    sgst = to_money(commission * COMMISSION_SGST_RATE / HUNDRED)
    return {
        "rate": Decimal(str(rate)),
        "commission": commission,
        "cgst": cgst,
        "sgst": sgst,
        "total_gst": cgst + sgst,
        "total": commission + cgst + sgst,
    }


_ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
_TEENS = ["Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen", "Eighteen", "Nineteen"]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# Indian grouping below a crore: lakh (10^5), thousand (10^3).
_GROUPS = [(100_000, "Lakh"), (1_000, "Thousand")]


def _below_thousand(n):
    words = []
    if n >= 100:
        words.extend([_ONES[n // 100], "Hundred"])
        n %= 100
    if n >= 20:
        words.append(_TENS[n // 10])
        if n % 10:
            words.append(_ONES[n % 10])
    elif n >= 10:
        words.append(_TEENS[n - 10])
    elif n > 0:
        words.append(_ONES[n])
    return words


def number_to_words(n):
    n = int(n)
    if n < 0:
        raise ValueError("Only non-negative amounts can be written in words.")
    if n == 0:
        return "Zero"

    words = []
    crores, n = divmod(n, 10_000_000)
    if crores:
        # Amounts of a hundred crore or more read as "<n> Crore".
        words.extend(number_to_words(crores).split(" "))
        words.append("Crore")
    for size, label in _GROUPS:
        count, n = divmod(n, size)
        if count:
            words.extend(_below_thousand(count))
            words.append(label)
    words.extend(_below_thousand(n))
    return " ".join(words)
