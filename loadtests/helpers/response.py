"""Response error extraction for load test observability.

Turns commerce API error bodies into one-line messages:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "..."}]}
- Stock conflicts (409): {"error": {...}, "available": n, "requested": m}
- Other domain errors: {"error": "msg"} or {"error": {"field": ["msg"]}}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def _flatten(error) -> str:
    if isinstance(error, dict):
        return " | ".join(
            f"{field}: {'; '.join(map(str, msgs)) if isinstance(msgs, list) else msgs}" for field, msgs in error.items()
        )
    return str(error)


def extract_error_detail(response: Response) -> str:
    """Compact error text for Locust failure messages and log lines."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if not isinstance(body, dict):
        return str(body)[:300]

    if isinstance(body.get("detail"), list):
        parts = []
        for err in body["detail"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if "available" in body and "requested" in body:
        return f"stock conflict on {body.get('product_id')}: {body['available']} available, {body['requested']} requested"

    if "error" in body:
        return _flatten(body["error"])

    return str(body)[:300]


def is_stock_conflict(response: Response) -> bool:
    return response.status_code == 409
