import uuid

from django.db import transaction
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.audit import create_audit_log_from_request
from invoicing import lot_transfer, services
from invoicing.documents import build_invoice_document
from invoicing.models import CommissionSettings, Invoice
from invoicing.serializers import (
    AssignUnsoldSerializer,
    CommissionOverrideSerializer,
    CommissionSettingsSerializer,
    InvoiceCreateSerializer,
    InvoiceSerializer,
    InvoiceUpdateSerializer,
    LotTransferSerializer,
    MarkPaidSerializer,
    SplitInvoiceSerializer,
)


UUID_PATTERN = "[0-9a-fA-F-]{36}"


def _invoice_queryset():
    return Invoice.objects.select_related("auction", "buyer").prefetch_related("lots")


def _fresh(invoice):
    return _invoice_queryset().get(id=invoice.id)


class InvoiceFilterMixin:
    def _uuid_param(self, name):
        value = self.request.query_params.get(name)
        if not value:
            return None
        try:
            return uuid.UUID(value)
        except ValueError:
            raise ValidationError({name: "Must be a valid UUID."})

    def filter_invoices(self, qs):
        params = self.request.query_params
        auction_id = self._uuid_param("auction")
        buyer_id = self._uuid_param("buyer")
        if auction_id:
            qs = qs.filter(auction_id=auction_id)
        if buyer_id:
            qs = qs.filter(buyer_id=buyer_id)
        if params.get("invoiceType"):
            qs = qs.filter(invoice_type=params["invoiceType"])
        if params.get("status"):
            qs = qs.filter(status=params["status"])
        return qs.order_by("invoice_type", "sequence_number")


class InvoiceViewSet(InvoiceFilterMixin, viewsets.ReadOnlyModelViewSet):
    """A buyer's own invoices."""

    serializer_class = InvoiceSerializer
    lookup_value_regex = UUID_PATTERN
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = _invoice_queryset().filter(buyer=self.request.user, invoice_type=Invoice.Type.CUSTOMER)
        return self.filter_invoices(qs)


class AdminInvoiceViewSet(
    InvoiceFilterMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = InvoiceSerializer
    lookup_value_regex = UUID_PATTERN
    permission_classes = [IsAdminUser]

    def get_queryset(self):
        return self.filter_invoices(_invoice_queryset())

    def _audit(self, *, action, invoice_id, summary="", before_snapshot=None, after_snapshot=None):
        create_audit_log_from_request(
            self.request,
            action=action,
            entity="invoice",
            entity_id=invoice_id,
            summary=summary,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
        )

    def create(self, request, *args, **kwargs):
        serializer = InvoiceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            invoice = services.create_invoice(**serializer.validated_data)
            data = InvoiceSerializer(_fresh(invoice)).data
            self._audit(
                action="invoice.create", invoice_id=invoice.id, summary=invoice.invoice_number, after_snapshot=data
            )
        return Response(data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, *args, **kwargs):
        invoice = self.get_object()
        before_snapshot = InvoiceSerializer(invoice).data
        serializer = InvoiceUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            invoice = services.update_invoice(invoice.id, serializer.validated_data)
            data = InvoiceSerializer(_fresh(invoice)).data
            self._audit(
                action="invoice.update",
                invoice_id=invoice.id,
                summary=invoice.invoice_number,
                before_snapshot=before_snapshot,
                after_snapshot=data,
            )
        return Response(data)

    def destroy(self, request, *args, **kwargs):
        invoice = self.get_object()
        before_snapshot = InvoiceSerializer(invoice).data
        with transaction.atomic():
            result = services.delete_invoice(invoice.id)
            self._audit(
                action="invoice.delete",
                invoice_id=invoice.id,
                summary=invoice.invoice_number,
                before_snapshot=before_snapshot,
                after_snapshot=result,
            )
        return Response(result, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="split")
    def split(self, request, pk=None):
        invoice = self.get_object()
        serializer = SplitInvoiceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            result = services.split_invoice(invoice.id, serializer.validated_data["lot_numbers"])
            data = {
                "original": InvoiceSerializer(_fresh(result["original"])).data,
                "created": InvoiceSerializer(_fresh(result["created"])).data,
            }
            self._audit(
                action="invoice.split",
                invoice_id=invoice.id,
                summary=f"{invoice.invoice_number} -> {result['created'].invoice_number}",
                after_snapshot=data,
            )
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, pk=None):
        invoice = self.get_object()
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            invoice = services.mark_invoice_paid(invoice.id, **serializer.validated_data)
            data = InvoiceSerializer(_fresh(invoice)).data
            self._audit(
                action="invoice.pay", invoice_id=invoice.id, summary=invoice.invoice_number, after_snapshot=data
            )
        return Response(data)

    @action(detail=True, methods=["put"], url_path="commission")
    def commission(self, request, pk=None):
        invoice = self.get_object()
        serializer = CommissionOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            invoice = services.set_invoice_commission(invoice.id, serializer.validated_data["commission_rate"])
            data = InvoiceSerializer(_fresh(invoice)).data
            self._audit(
                action="invoice.commission",
                invoice_id=invoice.id,
                summary=invoice.invoice_number,
                after_snapshot={"commissionRate": data["buyerDetails"].get("commissionRate")},
            )
        return Response(data)

    @action(detail=True, methods=["get"], url_path="document")
    def document(self, request, pk=None):
        invoice = self.get_object()
        return Response(build_invoice_document(invoice, CommissionSettings.load()))


class LotTransferViewSet(viewsets.ViewSet):
    permission_classes = [IsAdminUser]

    @action(detail=False, methods=["post"], url_path="transfer")
    def transfer(self, request):
        serializer = LotTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            result = lot_transfer.transfer_lots(**serializer.validated_data)
            data = {
                "from": InvoiceSerializer(_fresh(result["from"])).data if result["from"] is not None else None,
                "to": InvoiceSerializer(_fresh(result["to"])).data,
                "renumbered": result["renumbered"],
            }
            create_audit_log_from_request(
                request,
                action="lots.transfer",
                entity="invoice",
                entity_id=result["to"].id,
                summary=f"Lots {', '.join(str(n) for n in serializer.validated_data['lot_numbers'])}",
                before_snapshot={"fromBuyer": str(serializer.validated_data["from_buyer_id"])},
                after_snapshot=data,
            )
        return Response(data)

    @action(detail=False, methods=["post"], url_path="assign-unsold")
    def assign_unsold(self, request):
        serializer = AssignUnsoldSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            invoice = lot_transfer.assign_unsold_lots(**serializer.validated_data)
            data = InvoiceSerializer(_fresh(invoice)).data
            create_audit_log_from_request(
                request,
                action="lots.assign_unsold",
                entity="invoice",
                entity_id=invoice.id,
                summary=f"Lots {', '.join(str(n) for n in sorted(serializer.validated_data['prices']))}",
                after_snapshot=data,
            )
        return Response(data, status=status.HTTP_201_CREATED)


class CommissionSettingsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response(CommissionSettingsSerializer(CommissionSettings.load()).data)

    def put(self, request):
        instance = CommissionSettings.load()
        before_snapshot = CommissionSettingsSerializer(instance).data
        serializer = CommissionSettingsSerializer(instance, data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            instance = serializer.save(updated_by=request.user)
            data = CommissionSettingsSerializer(instance).data
            create_audit_log_from_request(
                request,
                action="settings.commission.update",
                entity="commission_settings",
                entity_id=instance.id,
                before_snapshot=before_snapshot,
                after_snapshot=data,
            )
        return Response(data)
