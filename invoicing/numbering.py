from django.conf import settings

DEFAULT_PREFIXES = {
    "Customer": "B/SALE",
    "Vendor": "V/SALE",
    "ASI": "ASI/",
}


def prefix_for(invoice_type):
    prefixes = {**DEFAULT_PREFIXES, **getattr(settings, "INVOICE_NUMBER_PREFIXES", {})}
    return prefixes[invoice_type]


def format_invoice_number(invoice_type, sequence_number):
    return f"{prefix_for(invoice_type)}{sequence_number}"


def renumber_plan(invoice_type, survivors, deleted_sequence):
    """Return the renumbering that closes the gap left by ``deleted_sequence``.

    ``survivors`` are ``(invoice_id, sequence_number)`` pairs of the same type
    after the deletion. Every invoice above the gap moves down by one; the
    plan is ordered ascending so it can be applied one row at a time without
    two invoices ever sharing a number.
    """
    plan = []
    for invoice_id, sequence_number in sorted(survivors, key=lambda pair: pair[1]):
        if sequence_number <= deleted_sequence:
            continue
        new_sequence = sequence_number - 1
        plan.append(
            {
                "id": invoice_id,
                "old_sequence": sequence_number,
                "new_sequence": new_sequence,
                "old_number": format_invoice_number(invoice_type, sequence_number),
                "new_number": format_invoice_number(invoice_type, new_sequence),
            }
        )
    return plan
