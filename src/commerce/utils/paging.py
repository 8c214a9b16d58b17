"""Helpers for walking repository query results past a single page."""

_BATCH = 500


def fetch_all(query, batch_size: int = _BATCH) -> list:
    """Return every record matched by a DAO query, fetching in batches."""
    records = []
    offset = 0
    while True:
        result = query.offset(offset).limit(batch_size).all()
        records.extend(result.items)
        offset += batch_size
        if offset >= result.total or not result.items:
            return records


def paginate(records: list, page: int, page_size: int) -> list:
    start = (max(page, 1) - 1) * page_size
    return records[start : start + page_size]
