from enum import Enum
from typing import Optional

from pydantic import BaseModel

from tt.core.exceptions import BadOrderBy, BadOrderDirection, BadThingsType


class ThingsType(str, Enum):
    DIR = "dir"
    FILE = "file"
    IRODS = "irods"
    OPENSTACK = "openstack"
    S3 = "s3"


class OrderBy(str, Enum):
    ADDRESS = "address"
    TYPE = "type"
    REASON = "reason"
    REMOVE = "remove"


class OrderDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


def parse_things_type(value: Optional[str]) -> Optional[ThingsType]:
    """Blank means no filter."""
    if not value:
        return None
    try:
        return ThingsType(value)
    except ValueError:
        raise BadThingsType(details={"type": value}) from None


def parse_order_by(value: Optional[str]) -> OrderBy:
    """Blank defaults to OrderBy.REMOVE."""
    if not value:
        return OrderBy.REMOVE
    try:
        return OrderBy(value)
    except ValueError:
        raise BadOrderBy(details={"sort": value}) from None


def parse_order_direction(value: Optional[str]) -> OrderDirection:
    """Blank defaults to OrderDirection.ASC."""
    if not value:
        return OrderDirection.ASC
    try:
        return OrderDirection(value)
    except ValueError:
        raise BadOrderDirection(details={"dir": value}) from None


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    error: ErrorBody
