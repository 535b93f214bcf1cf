from decimal import Decimal

from django.conf import settings

from invoicing.aggregator import aggregate_invoice
from invoicing.models import Invoice
from invoicing.money import commission_breakdown, commission_for, number_to_words, round_total, to_money
from invoicing.tax import split_hammer_gst


def amount_in_words(amount):
    return f"Rs. {number_to_words(amount)} Only"


def _commission_rate(invoice, commission_settings):
    if invoice.invoice_type == Invoice.Type.VENDOR:
        return Decimal(str(getattr(settings, "INVOICE_VENDOR_COMMISSION_RATE", 15)))
    buyer_rate = (invoice.buyer_details or {}).get("commissionRate") or getattr(
        settings, "INVOICE_DEFAULT_BUYER_COMMISSION_RATE", None
    )
    return commission_for(
        invoice.invoice_date,
        commission_settings.commission_cutoff_date,
        commission_settings.global_commission_rate,
        buyer_rate,
    )


def build_invoice_document(invoice, commission_settings):
    """Figures printed on a tax invoice.

    ``commission_settings`` is passed in rather than loaded here so the
    commission block stays a function of its inputs. Commission and its GST
    are shown alongside the totals and never folded into ``totalPayable``.
    """
    totals = aggregate_invoice(invoice.line_items(), invoice.packing_charges, invoice.insurance_charges)
    gst = split_hammer_gst(totals["hammer_gst"], invoice.gst_type)
    commission = commission_breakdown(totals["hammer_total"], _commission_rate(invoice, commission_settings))

    document = {
        "invoiceNumber": invoice.invoice_number,
        "invoiceDate": invoice.invoice_date,
        "invoiceType": invoice.invoice_type,
        "auction": {"id": invoice.auction_id, "code": invoice.auction.auction_code, "title": invoice.auction.title},
        "buyerDetails": invoice.buyer_details,
        "billingAddress": invoice.billing_address,
        "shippingAddress": invoice.shipping_address,
        "lineItems": [
            {
                "lotNumber": line["lot_number"],
                "description": line["description"],
                "hsnCode": line["hsn_code"],
                "quantity": line["quantity"],
                "hammerPrice": line["hammer_price"],
                "gstRate": line["gst_rate"],
                "baseAmount": line["base"],
                "gstAmount": line["gst"],
            }
            for line in totals["lines"]
        ],
        "charges": [
            {
                "kind": charge["kind"],
                "amount": charge["amount"],
                "gstRate": charge["gst_rate"],
                "baseAmount": charge["base"],
                "gstAmount": charge["gst"],
            }
            for charge in totals["charges"]
        ],
        "gstSummary": [
            {"rate": rate, "value": bucket["value"], "amount": bucket["amount"]}
            for rate, bucket in totals["gst_summary"].items()
        ],
        "gst": {"type": gst["type"], "cgst": gst["cgst"], "sgst": gst["sgst"], "igst": gst["igst"]},
        "hammerTotal": totals["hammer_total"],
        "grossAmount": totals["gross_amount"],
        "totalGst": totals["total_gst"],
        "amounts": {
            "roundOff": totals["amounts"]["round_off"],
            "totalPayable": totals["amounts"]["total_payable"],
        },
        "amountInWords": amount_in_words(totals["amounts"]["total_payable"]),
        "commission": {
            "rate": commission["rate"],
            "amount": commission["commission"],
            "cgst": commission["cgst"],
            "sgst": commission["sgst"],
            "totalGst": commission["total_gst"],
            "total": commission["total"],
        },
        "status": invoice.status,
    }

    if invoice.invoice_type == Invoice.Type.VENDOR:
        net = to_money(totals["hammer_total"] - commission["total"])
        document["settlement"] = {
            "hammerTotal": totals["hammer_total"],
            "commission": commission["commission"],
            "commissionGst": commission["total_gst"],
            "netPayable": net,
            "netPayableInWords": amount_in_words(round_total(net)["total_payable"]),
        }
    return document
