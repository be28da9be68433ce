import os

# Listing endpoints (custom roles, audit logs) share these bounds.
DEFAULT_LIMIT = int(os.getenv('PAGINATION_DEFAULT_LIMIT', '50'))
MAX_LIMIT = int(os.getenv('PAGINATION_MAX_LIMIT', '200'))


def normalize_pagination(limit_raw, offset_raw):
    """Return (limit, offset) clamped to [1, MAX_LIMIT] and >= 0; ValueError on non-int input."""
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int') from None
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset
