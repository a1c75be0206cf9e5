from __future__ import annotations

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


def paginate(request, queryset, serializer_class, *, paginator: PageNumberPagination | None = None) -> Response:
    """
    List responses always carry { count, next, previous, results }.
    The request is passed to the serializer so nested hyperlinks and actor fields resolve.
    """
    p = paginator or DefaultPagination()
    context = {"request": request}
    page = p.paginate_queryset(queryset, request)
    if page is None:
        rows = serializer_class(queryset, many=True, context=context).data
        return Response({"count": len(rows), "next": None, "previous": None, "results": rows})

    return p.get_paginated_response(serializer_class(page, many=True, context=context).data)
