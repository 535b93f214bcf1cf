from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from auctions.models import Auction
from auctions.serializers import AuctionSerializer, BuyerSummarySerializer, LotSerializer, RegistrationSerializer
from auctions.services import get_unsold_lots, list_registered_buyers


class AuctionViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Auction.objects.all()
    serializer_class = AuctionSerializer
    lookup_value_regex = "[0-9a-fA-F-]{36}"
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = self.queryset.order_by("-start_time", "auction_code")
        # Detail actions filter their own rows by ?status=.
        status_filter = self.request.query_params.get("status") if self.action == "list" else None
        if status_filter:
            qs = qs.filter(status=status_filter)
        return qs

    @action(detail=True, methods=["get"], url_path="lots")
    def lots(self, request, pk=None):
        auction = self.get_object()
        qs = auction.lots.order_by("lot_number")
        status_filter = request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(LotSerializer(page, many=True).data)
        return Response(LotSerializer(qs, many=True).data)

    @action(detail=True, methods=["get"], url_path="unsold-lots", permission_classes=[IsAdminUser])
    def unsold_lots(self, request, pk=None):
        return Response(LotSerializer(get_unsold_lots(pk), many=True).data)

    @action(detail=True, methods=["get"], url_path="buyers", permission_classes=[IsAdminUser])
    def buyers(self, request, pk=None):
        return Response(BuyerSummarySerializer(list_registered_buyers(pk), many=True).data)

    @action(detail=True, methods=["get"], url_path="registrations", permission_classes=[IsAdminUser])
    def registrations(self, request, pk=None):
        auction = self.get_object()
        qs = auction.registrations.order_by("full_name")
        status_filter = request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)
        return Response(RegistrationSerializer(qs, many=True).data)


class BuyerListView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        summaries = list_registered_buyers(request.query_params.get("auction") or None)
        return Response(BuyerSummarySerializer(summaries, many=True).data)
