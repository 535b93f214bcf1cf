from rest_framework import serializers

from auctions.models import Auction, AuctionRegistration, Lot


class AuctionSerializer(serializers.ModelSerializer):
    auctionCode = serializers.CharField(source="auction_code", read_only=True)
    startTime = serializers.DateTimeField(source="start_time", read_only=True)
    endTime = serializers.DateTimeField(source="end_time", read_only=True)

    class Meta:
        model = Auction
        fields = ["id", "auctionCode", "title", "status", "startTime", "endTime"]
        read_only_fields = fields


class LotSerializer(serializers.ModelSerializer):
    lotNumber = serializers.IntegerField(source="lot_number", read_only=True)
    hammerPrice = serializers.DecimalField(source="hammer_price", max_digits=12, decimal_places=2, read_only=True)
    startingPrice = serializers.DecimalField(source="starting_price", max_digits=12, decimal_places=2, read_only=True)
    reservePrice = serializers.DecimalField(source="reserve_price", max_digits=12, decimal_places=2, read_only=True)
    currentBid = serializers.DecimalField(source="current_bid", max_digits=12, decimal_places=2, read_only=True)
    gstRate = serializers.DecimalField(source="gst_rate", max_digits=5, decimal_places=2, read_only=True)
    hsnCode = serializers.CharField(source="hsn_code", read_only=True)
    winner = serializers.UUIDField(source="winner_id", read_only=True)

    class Meta:
        model = Lot
        fields = [
            "id",
            "lotNumber",
            "title",
            "description",
            "category",
            "hsnCode",
            "hammerPrice",
            "startingPrice",
            "reservePrice",
            "currentBid",
            "gstRate",
            "status",
            "winner",
        ]
        read_only_fields = fields


class RegistrationSerializer(serializers.ModelSerializer):
    fullName = serializers.CharField(source="full_name", read_only=True)
    gstNumber = serializers.CharField(source="gst_number", read_only=True)
    panNumber = serializers.CharField(source="pan_number", read_only=True)
    commissionRate = serializers.DecimalField(
        source="commission_rate", max_digits=5, decimal_places=2, read_only=True, allow_null=True
    )

    class Meta:
        model = AuctionRegistration
        fields = ["id", "user", "status", "fullName", "email", "mobile", "gstNumber", "panNumber", "commissionRate"]
        read_only_fields = fields


class BuyerInvoiceSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    invoiceNumber = serializers.CharField(source="invoice_number")
    lotNumbers = serializers.ListField(source="lot_numbers", child=serializers.IntegerField())
    totalPayable = serializers.IntegerField(source="total_payable")


class BuyerSummarySerializer(serializers.Serializer):
    buyerId = serializers.UUIDField(source="buyer_id")
    name = serializers.CharField()
    email = serializers.CharField()
    mobile = serializers.CharField()
    gstNumber = serializers.CharField(source="gst_number")
    panNumber = serializers.CharField(source="pan_number")
    auctionId = serializers.UUIDField(source="auction_id")
    auctionCode = serializers.CharField(source="auction_code")
    invoices = BuyerInvoiceSummarySerializer(many=True)
    lotNumbers = serializers.ListField(source="lot_numbers", child=serializers.IntegerField())
    totalPayable = serializers.IntegerField(source="total_payable")
