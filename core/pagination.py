import math


DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _positive_int(raw_value, default):
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def page_params(query_params, default_limit=DEFAULT_LIMIT):
    """Return ``(page, limit, skip)`` from ``?page=&limit=`` with sane bounds."""
    page = _positive_int(query_params.get("page"), 1)
    limit = min(_positive_int(query_params.get("limit"), default_limit), MAX_LIMIT)
    return page, limit, (page - 1) * limit


def build_pagination(page, limit, total):
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
