from django.urls import path
from rest_framework.routers import DefaultRouter

from invoicing.reports import AuctionSettlementReportView, InvoiceRegisterReportView
from invoicing.views import AdminInvoiceViewSet, CommissionSettingsView, InvoiceViewSet, LotTransferViewSet

router = DefaultRouter()
router.register(r"invoices", InvoiceViewSet, basename="invoice")
router.register(r"admin/invoices", AdminInvoiceViewSet, basename="admin-invoice")
router.register(r"admin/lot-transfer", LotTransferViewSet, basename="lot-transfer")

urlpatterns = router.urls + [
    path("admin/settings/commission/", CommissionSettingsView.as_view(), name="commission-settings"),
    path("admin/reports/auction-settlement/", AuctionSettlementReportView.as_view(), name="report-auction-settlement"),
    path("admin/reports/invoice-register/", InvoiceRegisterReportView.as_view(), name="report-invoice-register"),
]
