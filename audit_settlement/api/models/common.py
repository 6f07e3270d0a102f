"""Shared API model pieces."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

# ISO 8601 with Z suffix
DateTimeWithZ = Annotated[
    datetime,
    PlainSerializer(
        lambda v: v.isoformat().replace("+00:00", "Z") if v else None, return_type=str
    ),
]


class ProblemDetail(BaseModel):
    """RFC 7807 problem response body.

    Attributes:
        type: URN identifying the problem type.
        title: Short summary.
        status: HTTP status code.
        detail: Human-readable explanation.
        instance: Request URL.
        retryable: Whether resubmitting after a fresh read may succeed.
    """

    model_config = ConfigDict(extra="allow")

    type: str
    title: str
    status: int
    detail: str
    instance: str
    retryable: bool = False
