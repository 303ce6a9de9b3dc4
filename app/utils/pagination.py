import math
from typing import Any, Dict, List, Tuple

def paginate(query, page: int = 1, limit: int = 20) -> Tuple[List[Any], Dict[str, int]]:
    """Apply offset/limit to a query and build the response `meta` block"""
    page = max(page, 1)
    limit = max(limit, 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0
    }
