import math

from django.conf import settings
from rest_framework.pagination import PageNumberPagination

from apps.core.exceptions import ValidationError
from apps.core.responses import success_response

MAX_PAGE_SIZE = 100


def pagination_meta(page, page_size, total_items):
    return {
        'currentPage': page,
        'totalPages': math.ceil(total_items / page_size) if total_items else 0,
        'totalItems': total_items,
        'itemsPerPage': page_size,
    }


def clean_page_params(page, limit, default_limit=None):
    """
    Parse `page` / `limit` query values. Page starts at 1.
    """
    default_limit = default_limit or settings.REST_FRAMEWORK.get('PAGE_SIZE', 20)
    try:
        page = int(page) if page not in (None, '') else 1
        limit = int(limit) if limit not in (None, '') else default_limit
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be integers.')

    if page < 1:
        raise ValidationError('page must be 1 or greater.')
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f'limit must be between 1 and {MAX_PAGE_SIZE}.')
    return page, limit


def paginate_queryset(queryset, page, limit):
    """
    Slice a queryset for one page. Counts come from the same queryset so
    totals always reflect the active filters.
    """
    total = queryset.count()
    offset = (page - 1) * limit
    return list(queryset[offset:offset + limit]), pagination_meta(page, limit, total)


class EnvelopePagination(PageNumberPagination):
    """
    Default pagination for list endpoints. Accepts `page` and `limit`.
    """
    page_size_query_param = 'limit'
    max_page_size = MAX_PAGE_SIZE
    results_key = 'results'

    def get_paginated_response(self, data):
        meta = pagination_meta(
            self.page.number,
            self.page.paginator.per_page,
            self.page.paginator.count,
        )
        return success_response({self.results_key: data, 'pagination': meta})
