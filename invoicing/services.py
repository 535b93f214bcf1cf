import logging
from collections import Counter

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Max
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from auctions.models import Lot
from auctions.services import buyer_snapshot, get_auction, get_buyer, get_lots
from common.exceptions import ConflictError, NotFoundError
from invoicing.aggregator import aggregate_invoice
from invoicing.models import Invoice, InvoiceLot, InvoiceSequence
from invoicing.money import to_money, to_rate
from invoicing.numbering import format_invoice_number, renumber_plan
from invoicing.tax import gst_type_for, split_hammer_gst

logger = logging.getLogger(__name__)

OPEN_STATUSES = (Invoice.Status.GENERATED, Invoice.Status.SENT)


def default_charges():
    """Charges put on an invoice opened by a transfer or an unsold assignment."""
    return {
        "packing_charges": {
            "amount": getattr(settings, "INVOICE_DEFAULT_PACKING_CHARGE", 80),
            "gst_rate": getattr(settings, "INVOICE_DEFAULT_PACKING_GST_RATE", 18),
        },
        "insurance_charges": {
            "amount": 0,
            "gst_rate": getattr(settings, "INVOICE_DEFAULT_INSURANCE_GST_RATE", 18),
            "declined": False,
        },
    }


def get_invoice(invoice_id, *, for_update=False):
    queryset = Invoice.objects.select_related("auction", "buyer")
    if for_update:
        queryset = Invoice.objects.select_for_update()
    try:
        return queryset.get(id=invoice_id)
    except (Invoice.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Invoice {invoice_id} was not found.")


def lock_sequence(invoice_type):
    # Always taken before any invoice or lot row so writers of one type queue up
    # in the same order.
    InvoiceSequence.objects.get_or_create(invoice_type=invoice_type)
    return InvoiceSequence.objects.select_for_update().get(invoice_type=invoice_type)


def _allocate_number(sequence):
    sequence.last_number += 1
    sequence.save(update_fields=["last_number", "updated_at"])
    return sequence.last_number, format_invoice_number(sequence.invoice_type, sequence.last_number)


def _check_lot_numbers(lot_numbers, field="lots"):
    if not lot_numbers:
        raise ValidationError({field: ["At least one lot number is required."]})
    duplicates = sorted(number for number, count in Counter(lot_numbers).items() if count > 1)
    if duplicates:
        raise ValidationError({field: [f"Lot {number} is listed more than once." for number in duplicates]})


def _check_billable(lots):
    errors = []
    for lot in lots:
        if lot.status != Lot.Status.SOLD:
            errors.append(f"Lot {lot.lot_number} is {lot.status.lower()}, only sold lots can be invoiced.")
        elif lot.hammer_price is None or lot.hammer_price <= 0:
            errors.append(f"Lot {lot.lot_number} has no hammer price.")
    if errors:
        raise ValidationError({"lots": errors})


def ensure_unowned(lots, invoice_type, *, exclude_invoice=None):
    owned = InvoiceLot.objects.filter(lot__in=lots, invoice_type=invoice_type).select_related("invoice")
    if exclude_invoice is not None:
        owned = owned.exclude(invoice=exclude_invoice)
    owned = list(owned)
    if owned:
        line = owned[0]
        raise ConflictError(f"Lot {line.lot_number} is already billed on invoice {line.invoice.invoice_number}.")


def _with_gst_type(snapshot):
    company_code = getattr(settings, "INVOICE_COMPANY_STATE_CODE", "27")
    billing = snapshot.get("billing_address") or {}
    return gst_type_for(billing.get("stateCode"), company_code)


def _charge_fields(packing_charges=None, insurance_charges=None):
    fields = {}
    if packing_charges is not None:
        fields["packing_amount"] = to_money(packing_charges.get("amount"))
        if packing_charges.get("gst_rate") is not None:
            fields["packing_gst_rate"] = to_rate(packing_charges["gst_rate"])
    if insurance_charges is not None:
        fields["insurance_amount"] = to_money(insurance_charges.get("amount"))
        if insurance_charges.get("gst_rate") is not None:
            fields["insurance_gst_rate"] = to_rate(insurance_charges["gst_rate"])
        fields["insurance_declined"] = bool(insurance_charges.get("declined", False))
    return fields


def open_invoice(sequence, *, auction, buyer, snapshot, packing_charges=None, insurance_charges=None, **extra):
    """Create an invoice row with the next number of the locked ``sequence``.

    Callers attach lots and then call :func:`recompute_invoice`.
    """
    sequence_number, invoice_number = _allocate_number(sequence)
    return Invoice.objects.create(
        auction=auction,
        invoice_type=sequence.invoice_type,
        sequence_number=sequence_number,
        invoice_number=invoice_number,
        buyer=buyer,
        buyer_details=snapshot.get("buyer_details") or {},
        billing_address=snapshot.get("billing_address") or {},
        shipping_address=snapshot.get("shipping_address") or {},
        gst_type=_with_gst_type(snapshot),
        **_charge_fields(packing_charges, insurance_charges),
        **extra,
    )


def find_open_invoice(auction, buyer, invoice_type=Invoice.Type.CUSTOMER):
    return (
        Invoice.objects.select_for_update()
        .filter(auction=auction, buyer=buyer, invoice_type=invoice_type, status__in=OPEN_STATUSES)
        .order_by("sequence_number")
        .first()
    )


def _next_position(invoice):
    return (InvoiceLot.objects.filter(invoice=invoice).aggregate(top=Max("position"))["top"] or 0) + 1


def move_lines(lines, target):
    """Re-point existing invoice lines at ``target``, appended in the given order."""
    start = _next_position(target)
    for offset, line in enumerate(lines):
        line.invoice = target
        line.position = start + offset
        line.save(update_fields=["invoice", "position"])


def attach_lots(invoice, lots):
    start = _next_position(invoice)
    InvoiceLot.objects.bulk_create(
        [
            InvoiceLot(
                invoice=invoice,
                invoice_type=invoice.invoice_type,
                lot=lot,
                position=start + offset,
                lot_number=lot.lot_number,
                description=lot.title,
                hsn_code=lot.hsn_code,
                hammer_price=lot.hammer_price,
                gst_rate=lot.gst_rate,
            )
            for offset, lot in enumerate(lots)
        ]
    )


def recompute_invoice(invoice):
    """Re-run the aggregator over the invoice's current lots and persist its totals."""
    lines = [line.as_line_item() for line in InvoiceLot.objects.filter(invoice=invoice).order_by("position", "lot_number")]
    if not lines:
        raise ValidationError({"lots": [f"Invoice {invoice.invoice_number} must keep at least one lot."]})

    totals = aggregate_invoice(lines, invoice.packing_charges, invoice.insurance_charges)
    gst = split_hammer_gst(totals["hammer_gst"], invoice.gst_type)
    invoice.cgst = gst["cgst"]
    invoice.sgst = gst["sgst"]
    invoice.igst = gst["igst"]
    invoice.round_off = totals["amounts"]["round_off"]
    invoice.total_payable = totals["amounts"]["total_payable"]
    invoice.save(update_fields=["cgst", "sgst", "igst", "round_off", "total_payable", "updated_at"])
    return totals


def create_invoice(
    *,
    invoice_type,
    auction_id,
    buyer_id,
    lot_numbers,
    packing_charges=None,
    insurance_charges=None,
    buyer_details=None,
    billing_address=None,
    shipping_address=None,
    invoice_date=None,
    notes="",
):
    _check_lot_numbers(lot_numbers)

    with transaction.atomic():
        sequence = lock_sequence(invoice_type)
        auction = get_auction(auction_id)
        buyer = get_buyer(buyer_id)
        lots = get_lots(auction, lot_numbers, for_update=True)
        _check_billable(lots)
        ensure_unowned(lots, invoice_type)

        snapshot = buyer_snapshot(auction, buyer)
        if buyer_details:
            snapshot["buyer_details"] = {**snapshot["buyer_details"], **buyer_details}
        if billing_address:
            snapshot["billing_address"] = billing_address
        if shipping_address:
            snapshot["shipping_address"] = shipping_address

        extra = {"notes": notes}
        if invoice_date is not None:
            extra["invoice_date"] = invoice_date
        invoice = open_invoice(
            sequence,
            auction=auction,
            buyer=buyer,
            snapshot=snapshot,
            packing_charges=packing_charges,
            insurance_charges=insurance_charges,
            **extra,
        )
        attach_lots(invoice, lots)
        recompute_invoice(invoice)

    logger.info(
        "invoice_created",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "invoice_type": invoice.invoice_type,
            "auction_id": str(auction.id),
            "buyer_id": str(buyer.id),
            "lot_numbers": list(lot_numbers),
        },
    )
    return invoice


def update_invoice(invoice_id, patch):
    """Apply an edit and recompute. ``patch`` uses model field names plus
    ``packing_charges``, ``insurance_charges`` and ``lot_numbers``."""
    patch = dict(patch)
    lot_numbers = patch.pop("lot_numbers", None)
    if lot_numbers is not None:
        _check_lot_numbers(lot_numbers)
    invoice = get_invoice(invoice_id)

    with transaction.atomic():
        lock_sequence(invoice.invoice_type)
        invoice = get_invoice(invoice_id, for_update=True)
        changed = []

        for field in ("buyer_details", "billing_address", "shipping_address", "invoice_date", "notes", "sent_to_customer"):
            if field in patch:
                setattr(invoice, field, patch[field])
                changed.append(field)
        if "billing_address" in patch:
            invoice.gst_type = _with_gst_type({"billing_address": patch["billing_address"]})
            changed.append("gst_type")

        if "status" in patch:
            if patch["status"] == Invoice.Status.PAID and invoice.status == Invoice.Status.CANCELLED:
                raise ValidationError({"status": [f"Invoice {invoice.invoice_number} is cancelled and cannot be paid."]})
            invoice.status = patch["status"]
            changed.append("status")
            if invoice.status == Invoice.Status.PAID and invoice.paid_at is None:
                invoice.paid_at = timezone.now()
                changed.append("paid_at")
            if invoice.status == Invoice.Status.SENT:
                invoice.sent_to_customer = True
                changed.append("sent_to_customer")

        charge_fields = _charge_fields(patch.get("packing_charges"), patch.get("insurance_charges"))
        for field, value in charge_fields.items():
            setattr(invoice, field, value)
            changed.append(field)

        if changed:
            invoice.save(update_fields=sorted(set(changed)) + ["updated_at"])

        if lot_numbers is not None:
            lots = get_lots(invoice.auction, lot_numbers, for_update=True)
            kept = set(InvoiceLot.objects.filter(invoice=invoice).values_list("lot_number", flat=True))
            _check_billable([lot for lot in lots if lot.lot_number not in kept])
            ensure_unowned(lots, invoice.invoice_type, exclude_invoice=invoice)
            InvoiceLot.objects.filter(invoice=invoice).delete()
            attach_lots(invoice, lots)

        recompute_invoice(invoice)

    return invoice


def _renumber_invoice(entry):
    updated = Invoice.objects.filter(id=entry["id"], sequence_number=entry["old_sequence"]).update(
        sequence_number=entry["new_sequence"],
        invoice_number=entry["new_number"],
        updated_at=timezone.now(),
    )
    if updated != 1:
        raise ConflictError(f"Invoice {entry['old_number']} changed while invoices were being renumbered.")


def delete_and_renumber(invoice, sequence):
    """Delete ``invoice`` and close the gap in its type's numbering.

    Must run inside the transaction holding ``sequence``'s row lock.
    """
    invoice_type = invoice.invoice_type
    deleted_sequence = invoice.sequence_number
    survivors = list(
        Invoice.objects.select_for_update()
        .filter(invoice_type=invoice_type, sequence_number__gt=deleted_sequence)
        .values_list("id", "sequence_number")
    )

    invoice.delete()
    plan = renumber_plan(invoice_type, survivors, deleted_sequence)
    for entry in plan:
        _renumber_invoice(entry)

    sequence.last_number = Invoice.objects.filter(invoice_type=invoice_type).aggregate(top=Max("sequence_number"))["top"] or 0
    sequence.save(update_fields=["last_number", "updated_at"])

    renumbered = {entry["old_number"]: entry["new_number"] for entry in plan}
    if renumbered:
        logger.info("invoice_renumbered", extra={"invoice_type": invoice_type, "renumbered": renumbered})
    return renumbered


def delete_invoice(invoice_id):
    invoice = get_invoice(invoice_id)

    with transaction.atomic():
        sequence = lock_sequence(invoice.invoice_type)
        invoice = get_invoice(invoice_id, for_update=True)
        invoice_number = invoice.invoice_number
        renumbered = delete_and_renumber(invoice, sequence)

    logger.info(
        "invoice_deleted",
        extra={"invoice_id": str(invoice_id), "invoice_number": invoice_number, "invoice_type": sequence.invoice_type},
    )
    return {"renumbered": renumbered}


def split_invoice(invoice_id, lot_numbers):
    _check_lot_numbers(lot_numbers)
    invoice = get_invoice(invoice_id)

    with transaction.atomic():
        sequence = lock_sequence(invoice.invoice_type)
        invoice = get_invoice(invoice_id, for_update=True)
        current = list(InvoiceLot.objects.select_for_update().filter(invoice=invoice).values_list("lot_number", flat=True))

        foreign = [number for number in lot_numbers if number not in current]
        if foreign:
            raise ValidationError(
                {"lots": [f"Lot {number} is not on invoice {invoice.invoice_number}." for number in foreign]}
            )
        if len(lot_numbers) == len(current):
            raise ValidationError({"lots": ["A split must leave at least one lot on the original invoice."]})

        created = open_invoice(
            sequence,
            auction=invoice.auction,
            buyer=invoice.buyer,
            snapshot={
                "buyer_details": invoice.buyer_details,
                "billing_address": invoice.billing_address,
                "shipping_address": invoice.shipping_address,
            },
            invoice_date=invoice.invoice_date,
        )
        move_lines(InvoiceLot.objects.filter(invoice=invoice, lot_number__in=lot_numbers).order_by("position"), created)

        recompute_invoice(invoice)
        recompute_invoice(created)

    logger.info(
        "invoice_split",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "invoice_type": invoice.invoice_type,
            "lot_numbers": list(lot_numbers),
        },
    )
    return {"original": invoice, "created": created}


def mark_invoice_paid(invoice_id, *, payment_mode=None, paid_at=None):
    with transaction.atomic():
        invoice = get_invoice(invoice_id, for_update=True)
        if invoice.status == Invoice.Status.CANCELLED:
            raise ValidationError({"status": [f"Invoice {invoice.invoice_number} is cancelled and cannot be paid."]})
        invoice.status = Invoice.Status.PAID
        invoice.paid_at = paid_at or timezone.now()
        invoice.payment_mode = payment_mode or "Bank Transfer"
        invoice.save(update_fields=["status", "paid_at", "payment_mode", "updated_at"])
    return invoice


def set_invoice_commission(invoice_id, rate):
    """Store a per-invoice commission override; ``None`` clears it. Display only."""
    with transaction.atomic():
        invoice = get_invoice(invoice_id, for_update=True)
        details = dict(invoice.buyer_details or {})
        if rate is None:
            details.pop("commissionRate", None)
        else:
            details["commissionRate"] = str(to_rate(rate))
        invoice.buyer_details = details
        invoice.save(update_fields=["buyer_details", "updated_at"])
    return invoice
