"""
Translates request-shaped list parameters into a validated ThingsQuery.

Everything here is pure: invalid input raises a ValidationError before any
store is involved.
"""

from __future__ import annotations

from tt.schemas.common import parse_order_by, parse_order_direction, parse_things_type
from tt.schemas.things import ListParams, ThingsQuery


def translate(params: ListParams) -> ThingsQuery:
    """
    Validate and normalise list parameters.

    Blank sort becomes ``remove``, blank dir becomes ``ASC`` and blank type
    means no filter. Pagination only applies when page and per_page are both
    at least 1; otherwise both are reported as 0 and every row is returned.
    """
    order_by = parse_order_by(params.sort)
    order_direction = parse_order_direction(params.dir)
    filter_on_type = parse_things_type(params.type)

    page, per_page = params.page, params.per_page
    if page < 1 or per_page < 1:
        page, per_page = 0, 0

    return ThingsQuery(
        filter_on_type=filter_on_type,
        order_by=order_by,
        order_direction=order_direction,
        page=page,
        per_page=per_page,
    )


def last_page(count: int, per_page: int) -> int:
    """The highest page number that would return at least one thing."""
    if per_page < 1:
        return 0
    return -(-count // per_page)


def parse_int(value: str | None) -> int:
    """Lenient int parsing for query strings: anything non-numeric is 0."""
    if value is None:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0
