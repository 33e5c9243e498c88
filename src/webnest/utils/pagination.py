"""Page/limit helpers shared by every list endpoint."""

import math
from typing import Any, Dict


def skip_for(page: int, limit: int) -> int:
    """Number of documents to skip for a 1-based `page`."""
    return (max(page, 1) - 1) * limit


def build_pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    """
    Build the `pagination` block of a list response.

    Example:
        >>> build_pagination(1, 20, 57)
        {'page': 1, 'pages': 3, 'total': 57}
    """
    return {"page": page, "pages": math.ceil(total / limit) if limit else 0, "total": total}
