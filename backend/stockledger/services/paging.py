# Overview: Page/limit slicing for listing queries, returning the listing dict routes serialize.

from __future__ import annotations

from flask import current_app


def paginate(query, page: int | None = None, per_page: int | None = None) -> dict:
    """
    Slice an ordered query.

    page=None returns every row without pagination metadata.
    per_page defaults to LEDGER_DEFAULT_PAGE_SIZE and is capped at LEDGER_MAX_PAGE_SIZE.
    """
    if page is None:
        rows = query.all()
        return {"items": [row.to_dict() for row in rows], "count": len(rows)}

    default_size = current_app.config.get("LEDGER_DEFAULT_PAGE_SIZE", 10)
    max_size = current_app.config.get("LEDGER_MAX_PAGE_SIZE", 100)
    per_page = max(1, min(per_page or default_size, max_size))
    page = max(page, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [row.to_dict() for row in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
