"""
SCIM error taxonomy.

Every failure raised by the engine is a SCIMError carrying exactly one
ErrorKind plus a human-readable detail. The dispatch layer maps the kind to
the protocol status (RFC 7644 §3.12).
"""

from enum import Enum
from typing import Optional


ERROR_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:Error"


class ErrorKind(Enum):
    """Failure kinds and their HTTP status / default scimType."""

    BAD_REQUEST = (400, "invalidValue")
    CONFLICT = (409, "uniqueness")
    NOT_FOUND = (404, None)
    NOT_IMPLEMENTED = (501, None)
    INTERNAL_ERROR = (500, None)

    def __init__(self, status: int, scim_type: Optional[str]):
        self.status = status
        self.scim_type = scim_type


class SCIMError(Exception):
    """Exception for any SCIM processing failure."""

    def __init__(self, kind: ErrorKind, detail: str = "", scim_type: Optional[str] = None):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.scim_type = scim_type or kind.scim_type

    @property
    def status(self) -> int:
        return self.kind.status

    def __repr__(self):
        return f"SCIMError({self.kind.name}, {self.detail!r})"

    @classmethod
    def bad_request(cls, detail: str, scim_type: Optional[str] = None) -> "SCIMError":
        return cls(ErrorKind.BAD_REQUEST, detail, scim_type)

    @classmethod
    def conflict(cls, detail: str) -> "SCIMError":
        return cls(ErrorKind.CONFLICT, detail)

    @classmethod
    def not_found(cls, detail: str) -> "SCIMError":
        return cls(ErrorKind.NOT_FOUND, detail)

    @classmethod
    def not_implemented(cls, detail: str) -> "SCIMError":
        return cls(ErrorKind.NOT_IMPLEMENTED, detail)

    @classmethod
    def internal(cls, detail: str = "Internal server error") -> "SCIMError":
        return cls(ErrorKind.INTERNAL_ERROR, detail)

    def to_dict(self) -> dict:
        """Render the SCIM Error message body."""
        error = {
            "schemas": [ERROR_SCHEMA],
            "status": str(self.status),
        }
        if self.scim_type:
            error["scimType"] = self.scim_type
        if self.detail:
            error["detail"] = self.detail
        return error
