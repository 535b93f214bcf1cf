from collections import defaultdict

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from auctions.models import Auction, AuctionRegistration, Lot
from common.exceptions import NotFoundError
from core.models import User
from invoicing.tax import state_code_for


def _company_state():
    return getattr(settings, "INVOICE_COMPANY_STATE", "Maharashtra")


def _company_state_code():
    return getattr(settings, "INVOICE_COMPANY_STATE_CODE", "27")


def get_auction(auction_id, *, for_update=False):
    queryset = Auction.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=auction_id)
    except (Auction.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Auction {auction_id} was not found.")


def get_buyer(buyer_id):
    try:
        return User.objects.get(id=buyer_id, is_active=True)
    except (User.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"Buyer {buyer_id} was not found.")


def get_lots(auction, lot_numbers, *, for_update=False):
    """Return the auction's lots in the order the numbers were given."""
    queryset = Lot.objects.filter(auction=auction, lot_number__in=lot_numbers)
    if for_update:
        queryset = queryset.select_for_update()
    by_number = {lot.lot_number: lot for lot in queryset}

    missing = [number for number in lot_numbers if number not in by_number]
    if missing:
        raise NotFoundError(
            f"Lot(s) {', '.join(str(number) for number in missing)} not found in auction {auction.auction_code}."
        )
    return [by_number[number] for number in lot_numbers]


def get_unsold_lots(auction_id):
    auction = get_auction(auction_id)
    return list(auction.lots.filter(status=Lot.Status.UNSOLD).order_by("lot_number"))


def approved_registration(auction, user):
    return (
        AuctionRegistration.objects.filter(auction=auction, user=user, status=AuctionRegistration.Status.APPROVED)
        .order_by("-approved_at")
        .first()
    )


def require_registered_participant(auction, user):
    registration = approved_registration(auction, user)
    if registration is None:
        raise NotFoundError(f"Buyer {user.id} is not a registered participant of auction {auction.auction_code}.")
    return registration


def _address(street_parts, city, state, zip_code):
    state = state or _company_state()
    return {
        "street": ", ".join(part for part in street_parts if part),
        "city": city or "",
        "state": state,
        "stateCode": state_code_for(state, default=_company_state_code()),
        "zipCode": zip_code or "",
    }


def buyer_snapshot(auction, user):
    """Buyer details and addresses copied onto a new invoice.

    Prefers the approved registration for this auction, then any other
    approved registration of the user, then the bare user record.
    """
    registration = approved_registration(auction, user) or (
        AuctionRegistration.objects.filter(user=user, status=AuctionRegistration.Status.APPROVED)
        .order_by("-approved_at")
        .first()
    )

    buyer_details = {
        "name": user.display_name,
        "email": user.email,
        "phone": user.phone,
        "gstin": "",
        "pan": "",
        "buyerNumber": f"BUY{str(user.id)[-3:].upper()}",
    }
    if registration is None:
        billing = _address([], "", "", "")
        return {"buyer_details": buyer_details, "billing_address": billing, "shipping_address": dict(billing)}

    buyer_details.update(
        {
            "name": registration.full_name or user.display_name,
            "email": registration.email or user.email,
            "phone": registration.mobile or user.phone,
            "gstin": registration.gst_number,
            # PAN is embedded in characters 3-12 of a GSTIN.
            "pan": registration.pan_number or registration.gst_number[2:12],
        }
    )
    if registration.commission_rate is not None:
        buyer_details["commissionRate"] = str(registration.commission_rate)

    billing = _address(
        [registration.billing_address_line1, registration.billing_address_line2, registration.billing_address_line3],
        registration.billing_city,
        registration.billing_state,
        registration.billing_pin_code,
    )
    if registration.same_as_billing or not registration.shipping_address_line1:
        shipping = dict(billing)
    else:
        shipping = _address(
            [registration.shipping_address_line1, registration.shipping_address_line2],
            registration.shipping_city,
            registration.shipping_state,
            registration.shipping_pin_code,
        )
    return {"buyer_details": buyer_details, "billing_address": billing, "shipping_address": shipping}


def list_registered_buyers(auction_id=None):
    """Approved participants with the lots and totals of their Customer invoices."""
    from invoicing.models import Invoice

    registrations = AuctionRegistration.objects.filter(status=AuctionRegistration.Status.APPROVED).select_related(
        "user", "auction"
    )
    invoices = Invoice.objects.filter(invoice_type=Invoice.Type.CUSTOMER).prefetch_related("lots")
    if auction_id is not None:
        auction = get_auction(auction_id)
        registrations = registrations.filter(auction=auction)
        invoices = invoices.filter(auction=auction)

    invoices_by_buyer = defaultdict(list)
    for invoice in invoices.order_by("sequence_number"):
        invoices_by_buyer[(invoice.auction_id, invoice.buyer_id)].append(invoice)

    summaries = []
    for registration in registrations.order_by("auction__auction_code", "full_name"):
        buyer_invoices = invoices_by_buyer.get((registration.auction_id, registration.user_id), [])
        summaries.append(
            {
                "buyer_id": registration.user_id,
                "name": registration.full_name,
                "email": registration.email or registration.user.email,
                "mobile": registration.mobile,
                "gst_number": registration.gst_number,
                "pan_number": registration.pan_number,
                "auction_id": registration.auction_id,
                "auction_code": registration.auction.auction_code,
                "invoices": [
                    {
                        "id": invoice.id,
                        "invoice_number": invoice.invoice_number,
                        "lot_numbers": invoice.lot_numbers(),
                        "total_payable": invoice.total_payable,
                    }
                    for invoice in buyer_invoices
                ],
                "lot_numbers": [number for invoice in buyer_invoices for number in invoice.lot_numbers()],
                "total_payable": sum(invoice.total_payable for invoice in buyer_invoices),
            }
        )
    return summaries
