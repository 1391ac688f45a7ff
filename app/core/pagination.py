"""
Paginación de listados de la API.

Parámetros de consulta: ``page`` (base 1), ``pageSize`` (1-100), ``search``,
``orderBy``, ``orderDirection`` (asc/desc) y ``preselectedId``. Un elemento
preseleccionado aparece primero en la página 1 y se excluye de las páginas
siguientes; el resto de la secuencia se corre una posición para no saltar
ningún elemento.
"""
import math
from dataclasses import dataclass
from typing import Optional

from django.db.models import Q

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _int_or(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PageParams:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    search: str = ""
    order_by: str = ""
    order_direction: str = "asc"
    preselected_id: Optional[int] = None

    @classmethod
    def from_request(cls, request):
        query = request.GET
        page = max(_int_or(query.get("page"), 1), 1)
        page_size = min(max(_int_or(query.get("pageSize"), DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)
        direction = (query.get("orderDirection") or "asc").strip().lower()
        if direction not in ("asc", "desc"):
            direction = "asc"
        return cls(
            page=page,
            page_size=page_size,
            search=(query.get("search") or "").strip(),
            order_by=(query.get("orderBy") or "").strip().lower(),
            order_direction=direction,
            preselected_id=_int_or(query.get("preselectedId"), None),
        )


def build_meta(total, page, page_size, current_count):
    total_pages = math.ceil(total / page_size) if total else 0
    start_index = (page - 1) * page_size + 1 if current_count else 0
    end_index = start_index + current_count - 1 if current_count else 0
    return {
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrevious": page > 1,
        "currentPageCount": current_count,
        "startIndex": start_index,
        "endIndex": end_index,
    }


def _ordering(params, order_fields, default_ordering):
    field = (order_fields or {}).get(params.order_by)
    if not field:
        return list(default_ordering) + ["-pk"]
    prefix = "-" if params.order_direction == "desc" else ""
    return [f"{prefix}{field}", f"{prefix}pk"]


def paginate(
    queryset,
    params,
    serialize,
    search_fields=(),
    order_fields=None,
    default_ordering=("-created_at",),
):
    if params.search and search_fields:
        condition = Q()
        for name in search_fields:
            condition |= Q(**{f"{name}__icontains": params.search})
        queryset = queryset.filter(condition)

    queryset = queryset.order_by(*_ordering(params, order_fields, default_ordering))
    total = queryset.count()

    pinned = None
    if params.preselected_id is not None:
        pinned = queryset.filter(pk=params.preselected_id).first()

    page, size = params.page, params.page_size
    if pinned is None:
        offset = (page - 1) * size
        items = list(queryset[offset:offset + size])
    else:
        rest = queryset.exclude(pk=pinned.pk)
        if page == 1:
            items = [pinned] + list(rest[:size - 1])
        else:
            offset = (page - 1) * size - 1
            items = list(rest[offset:offset + size])

    return {
        "data": [serialize(item) for item in items],
        "meta": build_meta(total, page, size, len(items)),
    }
