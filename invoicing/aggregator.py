from decimal import Decimal

from invoicing.money import aggregate_by_rate, reverse_gst, round_total, to_money, to_rate

PACKING = "packing"
INSURANCE = "insurance"


def _charge_is_billable(kind, charge):
    if not charge:
        return False
    if kind == INSURANCE and charge.get("declined"):
        return False
    return to_money(charge.get("amount")) > 0


def aggregate_invoice(lines, packing_charges=None, insurance_charges=None):
    """Compute one invoice's line items and totals from its lots and charges.

    ``lines`` are mappings with at least ``hammer_price`` and ``gst_rate``;
    charges are ``{"amount", "gst_rate"}`` (insurance also ``declined``).
    All inputs are GST-inclusive. The result carries everything the invoice
    shows; only ``amounts`` is ever persisted.
    """
    line_items = []
    for line in lines:
        price = to_money(line["hammer_price"])
        split = reverse_gst(price, line["gst_rate"])
        line_items.append(
            {
                **line,
                "hammer_price": price,
                "gst_rate": to_rate(line["gst_rate"]),
                "base": split["base"],
                "gst": split["gst"],
            }
        )

    charge_items = []
    for kind, charge in ((PACKING, packing_charges), (INSURANCE, insurance_charges)):
        if not _charge_is_billable(kind, charge):
            continue
        amount = to_money(charge["amount"])
        split = reverse_gst(amount, charge["gst_rate"])
        charge_items.append(
            {
                "kind": kind,
                "amount": amount,
                "gst_rate": to_rate(charge["gst_rate"]),
                "base": split["base"],
                "gst": split["gst"],
            }
        )

    every_item = line_items + charge_items
    gross_amount = sum((item["base"] for item in every_item), Decimal("0.00"))
    total_gst = sum((item["gst"] for item in every_item), Decimal("0.00"))

    return {
        "lines": line_items,
        "charges": charge_items,
        "gst_summary": aggregate_by_rate(every_item),
        "hammer_total": sum((item["hammer_price"] for item in line_items), Decimal("0.00")),
        "hammer_gst": sum((item["gst"] for item in line_items), Decimal("0.00")),
        "gross_amount": gross_amount,
        "total_gst": total_gst,
        "amounts": round_total(gross_amount + total_gst),
    }
