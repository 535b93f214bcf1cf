from decimal import Decimal

from rest_framework import serializers

from invoicing.models import CommissionSettings, Invoice, InvoiceLot


def _money(value):
    return None if value is None else str(value)


class InvoiceLotSerializer(serializers.ModelSerializer):
    lotNumber = serializers.IntegerField(source="lot_number", read_only=True)
    hsnCode = serializers.CharField(source="hsn_code", read_only=True)
    hammerPrice = serializers.DecimalField(source="hammer_price", max_digits=12, decimal_places=2, read_only=True)
    gstRate = serializers.DecimalField(source="gst_rate", max_digits=5, decimal_places=2, read_only=True)

    class Meta:
        model = InvoiceLot
        fields = ["lotNumber", "description", "hsnCode", "quantity", "hammerPrice", "gstRate"]
        read_only_fields = fields


class InvoiceSerializer(serializers.ModelSerializer):
    invoiceNumber = serializers.CharField(source="invoice_number", read_only=True)
    invoiceDate = serializers.DateField(source="invoice_date", read_only=True)
    invoiceType = serializers.CharField(source="invoice_type", read_only=True)
    buyerDetails = serializers.JSONField(source="buyer_details", read_only=True)
    billingAddress = serializers.JSONField(source="billing_address", read_only=True)
    shippingAddress = serializers.JSONField(source="shipping_address", read_only=True)
    lots = InvoiceLotSerializer(many=True, read_only=True)
    packingCharges = serializers.SerializerMethodField()
    insuranceCharges = serializers.SerializerMethodField()
    gst = serializers.SerializerMethodField()
    amounts = serializers.SerializerMethodField()
    sentToCustomer = serializers.BooleanField(source="sent_to_customer", read_only=True)
    paidAt = serializers.DateTimeField(source="paid_at", read_only=True)
    paymentMode = serializers.CharField(source="payment_mode", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id",
            "invoiceNumber",
            "invoiceDate",
            "invoiceType",
            "auction",
            "buyer",
            "buyerDetails",
            "billingAddress",
            "shippingAddress",
            "lots",
            "packingCharges",
            "insuranceCharges",
            "gst",
            "amounts",
            "status",
            "sentToCustomer",
            "paidAt",
            "paymentMode",
            "notes",
            "createdAt",
            "updatedAt",
        ]
        read_only_fields = fields

    def get_packingCharges(self, obj):
        return {"amount": _money(obj.packing_amount), "gstRate": _money(obj.packing_gst_rate)}

    def get_insuranceCharges(self, obj):
        return {
            "amount": _money(obj.insurance_amount),
            "gstRate": _money(obj.insurance_gst_rate),
            "declined": obj.insurance_declined,
        }

    def get_gst(self, obj):
        return {"cgst": _money(obj.cgst), "sgst": _money(obj.sgst), "igst": _money(obj.igst), "type": obj.gst_type}

    def get_amounts(self, obj):
        return {"roundOff": _money(obj.round_off), "totalPayable": obj.total_payable}


class ChargeInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    gstRate = serializers.DecimalField(
        source="gst_rate", max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False
    )


class InsuranceInputSerializer(ChargeInputSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, default=Decimal("0"))
    declined = serializers.BooleanField(required=False, default=False)


class LotNumbersField(serializers.ListField):
    child = serializers.IntegerField(min_value=1)


class InvoiceCreateSerializer(serializers.Serializer):
    invoiceType = serializers.ChoiceField(source="invoice_type", choices=Invoice.Type.choices, default=Invoice.Type.CUSTOMER)
    auction = serializers.UUIDField(source="auction_id")
    buyer = serializers.UUIDField(source="buyer_id")
    lots = LotNumbersField(source="lot_numbers")
    packingCharges = ChargeInputSerializer(source="packing_charges", required=False)
    insuranceCharges = InsuranceInputSerializer(source="insurance_charges", required=False)
    buyerDetails = serializers.DictField(source="buyer_details", required=False)
    billingAddress = serializers.DictField(source="billing_address", required=False)
    shippingAddress = serializers.DictField(source="shipping_address", required=False)
    invoiceDate = serializers.DateField(source="invoice_date", required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class InvoiceUpdateSerializer(serializers.Serializer):
    lots = LotNumbersField(source="lot_numbers", required=False)
    packingCharges = ChargeInputSerializer(source="packing_charges", required=False)
    insuranceCharges = InsuranceInputSerializer(source="insurance_charges", required=False)
    buyerDetails = serializers.DictField(source="buyer_details", required=False)
    billingAddress = serializers.DictField(source="billing_address", required=False)
    shippingAddress = serializers.DictField(source="shipping_address", required=False)
    invoiceDate = serializers.DateField(source="invoice_date", required=False)
    status = serializers.ChoiceField(choices=Invoice.Status.choices, required=False)
    sentToCustomer = serializers.BooleanField(source="sent_to_customer", required=False)
    notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        for field in ("amounts", "gst", "invoiceNumber", "totalPayable", "roundOff"):
            if field in self.initial_data:
                raise serializers.ValidationError({field: "Totals and numbering are computed and cannot be edited."})
        return attrs


class SplitInvoiceSerializer(serializers.Serializer):
    lots = LotNumbersField(source="lot_numbers")


class LotTransferSerializer(serializers.Serializer):
    auction = serializers.UUIDField(source="auction_id")
    fromBuyer = serializers.UUIDField(source="from_buyer_id")
    toBuyer = serializers.UUIDField(source="to_buyer_id")
    lots = LotNumbersField(source="lot_numbers")


class AssignUnsoldSerializer(serializers.Serializer):
    auction = serializers.UUIDField(source="auction_id")
    buyer = serializers.UUIDField(source="buyer_id")
    prices = serializers.DictField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True),
        allow_empty=True,
    )

    def validate_prices(self, value):
        prices = {}
        for key, price in value.items():
            try:
                lot_number = int(key)
            except (TypeError, ValueError):
                raise serializers.ValidationError(f"'{key}' is not a lot number.")
            if lot_number in prices:
                raise serializers.ValidationError(f"Lot {lot_number} is listed more than once.")
            prices[lot_number] = price
        return prices


class MarkPaidSerializer(serializers.Serializer):
    paymentMode = serializers.CharField(source="payment_mode", required=False, allow_blank=True, max_length=64)
    paidAt = serializers.DateTimeField(source="paid_at", required=False)


class CommissionOverrideSerializer(serializers.Serializer):
    commissionRate = serializers.DecimalField(
        source="commission_rate",
        max_digits=5,
        decimal_places=2,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
        allow_null=True,
    )


class CommissionSettingsSerializer(serializers.ModelSerializer):
    globalCommissionRate = serializers.DecimalField(
        source="global_commission_rate", max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100")
    )
    commissionCutoffDate = serializers.DateField(source="commission_cutoff_date", allow_null=True, required=False)
    updatedBy = serializers.UUIDField(source="updated_by_id", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = CommissionSettings
        fields = ["globalCommissionRate", "commissionCutoffDate", "updatedBy", "updatedAt"]
