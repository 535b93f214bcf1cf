from django.urls import path
from rest_framework.routers import DefaultRouter

from auctions.views import AuctionViewSet, BuyerListView

router = DefaultRouter()
router.register(r"auctions", AuctionViewSet, basename="auction")

urlpatterns = router.urls + [
    path("buyers/", BuyerListView.as_view(), name="buyer-list"),
]
