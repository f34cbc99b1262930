from __future__ import annotations


class DomainError(Exception):
    """Base for failures the services report to callers.

    `status_code` and `code` are what the HTTP layer renders; services never
    build HTTP responses themselves.
    """
    status_code = 400
    code = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    status_code = 422
    code = "validation_error"


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


class Conflict(DomainError):
    status_code = 409
    code = "conflict"


class Full(DomainError):
    status_code = 409
    code = "full"


class NotJoinable(DomainError):
    status_code = 409
    code = "not_joinable"


class Forbidden(DomainError):
    status_code = 403
    code = "forbidden"


class Gone(DomainError):
    status_code = 410
    code = "gone"
