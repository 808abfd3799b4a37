"""Small helpers shared by the API views."""
from __future__ import annotations

import math

from rest_framework.response import Response


def ok(data=None, status: int = 200, **extra) -> Response:
    body = {'success': True}
    if data is not None:
        body['data'] = data
    body.update(extra)
    return Response(body, status=status)


def paginate(qs, page: int, limit: int):
    """Slice ``qs`` and return ``(rows, meta)`` for the list envelope."""
    total = qs.count()
    start = (page - 1) * limit
    rows = list(qs[start:start + limit])
    meta = {
        'count': len(rows),
        'total': total,
        'page': page,
        'pages': math.ceil(total / limit) if limit else 1,
    }
    return rows, meta
