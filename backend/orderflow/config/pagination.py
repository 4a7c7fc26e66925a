DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def _as_int(raw, name: str, default: int) -> int:
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f'{name} must be an integer')


def normalize_pagination(limit_raw, offset_raw):
    """Clamp limit into [1, MAX_LIMIT]; a negative offset reads as 0."""
    limit = _as_int(limit_raw, 'limit', DEFAULT_LIMIT)
    offset = _as_int(offset_raw, 'offset', 0)
    return max(1, min(limit, MAX_LIMIT)), max(0, offset)
