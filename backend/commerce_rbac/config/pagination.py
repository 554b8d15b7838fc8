DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_pagination(limit_raw, offset_raw):
    """Clamp list paging parameters; non-integers raise ValueError."""
    try:
        limit = int(limit_raw) if limit_raw not in (None, '') else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw not in (None, '') else 0
    except (TypeError, ValueError):
        raise ValueError('limit/offset must be integers')
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
