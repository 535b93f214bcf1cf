import csv
from decimal import Decimal

from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from django.http import HttpResponse
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from auctions.models import Lot
from auctions.services import get_auction
from invoicing.models import Invoice, InvoiceLot


class BaseReportView(APIView):
    permission_classes = [IsAdminUser]

    def _auction(self, request, required=False):
        auction_id = request.query_params.get("auction")
        if not auction_id:
            if required:
                raise ValidationError({"auction": "This query parameter is required."})
            return None
        return get_auction(auction_id)

    def _date_range(self, request):
        date_from = parse_date(request.query_params.get("date_from", ""))
        date_to = parse_date(request.query_params.get("date_to", ""))
        if not date_from and not date_to:
            return None, None

        if not date_from or not date_to:
            raise ValidationError({"date_range": "Both date_from and date_to are required."})
        if date_from > date_to:
            raise ValidationError({"date_range": "date_from must be before or equal to date_to."})
        return date_from, date_to

    def _csv_response(self, filename, rows):
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        if not rows:
            return response

        writer = csv.DictWriter(response, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
        return response


def auction_settlement(auction):
    invoices = Invoice.objects.filter(auction=auction)
    by_type_status = list(
        invoices.values("invoice_type", "status")
        .annotate(
            invoice_count=Count("id"),
            total=Coalesce(Sum("total_payable"), 0),
        )
        .order_by("invoice_type", "status")
    )
    lot_counts = {
        row["status"]: row["count"]
        for row in auction.lots.values("status").annotate(count=Count("id")).order_by("status")
    }
    invoiced_lot_ids = InvoiceLot.objects.filter(
        invoice__auction=auction, invoice_type=Invoice.Type.CUSTOMER
    ).values_list("lot_id", flat=True)
    uninvoiced = list(
        auction.lots.filter(status=Lot.Status.SOLD)
        .exclude(id__in=invoiced_lot_ids)
        .order_by("lot_number")
        .values_list("lot_number", flat=True)
    )
    hammer_total = auction.lots.filter(status=Lot.Status.SOLD).aggregate(
        total=Coalesce(Sum("hammer_price"), Decimal("0.00"))
    )["total"]

    customer = invoices.filter(invoice_type=Invoice.Type.CUSTOMER).exclude(status=Invoice.Status.CANCELLED)
    return {
        "auction_id": str(auction.id),
        "auction_code": auction.auction_code,
        "invoices": by_type_status,
        "lots": {
            "sold": lot_counts.get(Lot.Status.SOLD, 0),
            "unsold": lot_counts.get(Lot.Status.UNSOLD, 0),
            "pending": lot_counts.get(Lot.Status.PENDING, 0),
            "sold_not_invoiced": uninvoiced,
        },
        "hammer_total": hammer_total,
        "customer_total_payable": customer.aggregate(total=Coalesce(Sum("total_payable"), 0))["total"],
        "customer_total_paid": customer.filter(status=Invoice.Status.PAID).aggregate(
            total=Coalesce(Sum("total_payable"), 0)
        )["total"],
    }


class AuctionSettlementReportView(BaseReportView):
    def get(self, request):
        auction = self._auction(request, required=True)
        return Response(auction_settlement(auction))


class InvoiceRegisterReportView(BaseReportView):
    def get(self, request):
        auction = self._auction(request)
        date_from, date_to = self._date_range(request)

        qs = Invoice.objects.select_related("auction").prefetch_related("lots")
        if auction is not None:
            qs = qs.filter(auction=auction)
        if date_from and date_to:
            qs = qs.filter(invoice_date__gte=date_from, invoice_date__lte=date_to)
        invoice_type = request.query_params.get("invoice_type")
        if invoice_type:
            qs = qs.filter(invoice_type=invoice_type)

        rows = [
            {
                "invoice_number": invoice.invoice_number,
                "invoice_date": invoice.invoice_date.isoformat(),
                "invoice_type": invoice.invoice_type,
                "auction_code": invoice.auction.auction_code,
                "buyer": (invoice.buyer_details or {}).get("name", ""),
                "gstin": (invoice.buyer_details or {}).get("gstin", ""),
                "lot_numbers": " ".join(str(number) for number in invoice.lot_numbers()),
                "cgst": invoice.cgst,
                "sgst": invoice.sgst,
                "igst": invoice.igst,
                "round_off": invoice.round_off,
                "total_payable": invoice.total_payable,
                "status": invoice.status,
            }
            for invoice in qs.order_by("invoice_type", "sequence_number")
        ]
        if request.query_params.get("export") == "csv":
            return self._csv_response("invoice_register.csv", rows)
        return Response({"results": rows})
