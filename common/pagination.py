from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Shared pagination for invoice, lot and audit-log listings.

    Clients can tune page size with `?page_size=` but values are capped to keep
    payload sizes predictable.
    """

    page_size_query_param = "page_size"
    max_page_size = 200
