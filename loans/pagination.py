from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from .conf import get_loan_settings


class LoanPagination(PageNumberPagination):
    """Offset pagination reporting ``current_page``/``last_page``/``per_page``/``total``."""

    page_size_query_param = "per_page"
    max_page_size = 100

    def get_page_size(self, request):
        self.page_size = get_loan_settings().page_size
        return super().get_page_size(request)

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response(
            {
                "data": data,
                "meta": {
                    "current_page": self.page.number,
                    "last_page": paginator.num_pages,
                    "per_page": paginator.per_page,
                    "total": paginator.count,
                },
            }
        )
