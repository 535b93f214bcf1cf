"""Moving lots between buyers after an auction has closed.

Both operations work on Customer invoices and take the Customer sequence
lock first, since either may open a new invoice or delete an emptied one.
"""

import logging
from collections import Counter

from django.db import transaction
from rest_framework.exceptions import ValidationError

from auctions.models import Lot
from auctions.services import buyer_snapshot, get_auction, get_buyer, get_lots, require_registered_participant
from common.exceptions import ConflictError
from invoicing.models import Invoice, InvoiceLot
from invoicing.money import to_money
from invoicing.services import (
    attach_lots,
    default_charges,
    delete_and_renumber,
    find_open_invoice,
    lock_sequence,
    move_lines,
    open_invoice,
    recompute_invoice,
)

logger = logging.getLogger(__name__)


def _buyer_invoice(sequence, auction, buyer):
    invoice = find_open_invoice(auction, buyer)
    if invoice is not None:
        return invoice, False
    invoice = open_invoice(sequence, auction=auction, buyer=buyer, snapshot=buyer_snapshot(auction, buyer), **default_charges())
    return invoice, True


def transfer_lots(*, auction_id, from_buyer_id, to_buyer_id, lot_numbers):
    if not lot_numbers:
        raise ValidationError({"lots": ["At least one lot number is required."]})
    duplicates = sorted(number for number, count in Counter(lot_numbers).items() if count > 1)
    if duplicates:
        raise ValidationError({"lots": [f"Lot {number} is listed more than once." for number in duplicates]})
    if str(from_buyer_id) == str(to_buyer_id):
        raise ValidationError({"to_buyer": ["Lots cannot be transferred to the buyer who already holds them."]})

    with transaction.atomic():
        sequence = lock_sequence(Invoice.Type.CUSTOMER)
        auction = get_auction(auction_id)
        from_buyer = get_buyer(from_buyer_id)
        to_buyer = get_buyer(to_buyer_id)
        require_registered_participant(auction, to_buyer)
        lots = get_lots(auction, lot_numbers, for_update=True)

        lines = {
            line.lot_id: line
            for line in InvoiceLot.objects.select_for_update()
            .filter(lot__in=lots, invoice_type=Invoice.Type.CUSTOMER)
            .select_related("invoice")
        }
        source_ids = set()
        for lot in lots:
            line = lines.get(lot.id)
            if line is None:
                raise ValidationError({"lots": [f"Lot {lot.lot_number} is not on any invoice of the selling buyer."]})
            if line.invoice.buyer_id != from_buyer.id:
                raise ConflictError(
                    f"Lot {lot.lot_number} is billed on invoice {line.invoice.invoice_number} of another buyer."
                )
            source_ids.add(line.invoice_id)
        if len(source_ids) > 1:
            raise ValidationError({"lots": ["All transferred lots must come from the same invoice."]})

        source = Invoice.objects.select_for_update().get(id=source_ids.pop())
        target, created = _buyer_invoice(sequence, auction, to_buyer)
        move_lines([lines[lot.id] for lot in lots], target)
        for lot in lots:
            lot.winner = to_buyer
            lot.save(update_fields=["winner", "updated_at"])
        recompute_invoice(target)

        renumbered = {}
        if InvoiceLot.objects.filter(invoice=source).exists():
            recompute_invoice(source)
        else:
            renumbered = delete_and_renumber(source, sequence)
            source = None
            target.refresh_from_db()

    logger.info(
        "lots_transferred",
        extra={
            "auction_id": str(auction.id),
            "buyer_id": str(to_buyer.id),
            "invoice_id": str(target.id),
            "invoice_number": target.invoice_number,
            "lot_numbers": list(lot_numbers),
            "renumbered": renumbered or None,
        },
    )
    return {"from": source, "to": target, "created": created, "renumbered": renumbered}


def assign_unsold_lots(*, auction_id, buyer_id, prices):
    """Sell unsold lots to ``buyer_id`` at the operator's ``{lot_number: price}``."""
    if not prices:
        raise ValidationError({"prices": ["At least one lot with a hammer price is required."]})
    missing = {
        str(number): ["A hammer price greater than zero is required."]
        for number, price in prices.items()
        if price in (None, "") or to_money(price) <= 0
    }
    if missing:
        raise ValidationError({"prices": missing})

    lot_numbers = sorted(prices)
    with transaction.atomic():
        sequence = lock_sequence(Invoice.Type.CUSTOMER)
        auction = get_auction(auction_id)
        buyer = get_buyer(buyer_id)
        lots = get_lots(auction, lot_numbers, for_update=True)

        not_unsold = [lot for lot in lots if lot.status != Lot.Status.UNSOLD]
        if not_unsold:
            raise ValidationError(
                {"lots": [f"Lot {lot.lot_number} is {lot.status.lower()}, not unsold." for lot in not_unsold]}
            )
        owned = InvoiceLot.objects.filter(lot__in=lots).select_related("invoice").first()
        if owned is not None:
            raise ConflictError(f"Lot {owned.lot_number} is already billed on invoice {owned.invoice.invoice_number}.")

        for lot in lots:
            lot.hammer_price = to_money(prices[lot.lot_number])
            lot.status = Lot.Status.SOLD
            lot.winner = buyer
            lot.save(update_fields=["hammer_price", "status", "winner", "updated_at"])

        invoice, _ = _buyer_invoice(sequence, auction, buyer)
        attach_lots(invoice, lots)
        recompute_invoice(invoice)

    logger.info(
        "unsold_lots_assigned",
        extra={
            "auction_id": str(auction.id),
            "buyer_id": str(buyer.id),
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "lot_numbers": lot_numbers,
        },
    )
    return invoice
