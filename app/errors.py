from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


# ---------------------------------------------------------------------------
# Custody error taxonomy
# ---------------------------------------------------------------------------


class CustodyError(HTTPException):
    """Base for custody engine failures.

    Carries the item, actor and attempted action so audit logs can be
    correlated with the failed request.
    """

    status_code = 400
    code = "custody_error"

    def __init__(
        self,
        message: str,
        *,
        item_id=None,
        actor_id=None,
        action: str | None = None,
        headers: dict | None = None,
    ):
        self.message = message
        self.item_id = str(item_id) if item_id is not None else None
        self.actor_id = str(actor_id) if actor_id is not None else None
        self.action = action
        super().__init__(
            status_code=type(self).status_code,
            detail={
                "code": self.code,
                "message": message,
                "details": {
                    "item_id": self.item_id,
                    "actor_id": self.actor_id,
                    "action": action,
                },
            },
            headers=headers,
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(CustodyError):
    status_code = 422
    code = "validation_error"


class NotAuthorized(CustodyError):
    status_code = 403
    code = "not_authorized"


class NoReturnTarget(CustodyError):
    status_code = 409
    code = "no_return_target"


class AlreadyArchived(CustodyError):
    status_code = 409
    code = "already_archived"


class NotFound(CustodyError):
    status_code = 404
    code = "not_found"


class InvalidSequence(CustodyError):
    status_code = 409
    code = "invalid_sequence"


class ConcurrentUpdate(CustodyError):
    """Lost a race for the item lock; the only error worth retrying."""

    status_code = 409
    code = "concurrent_update"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("headers", {"Retry-After": "1"})
        super().__init__(message, **kwargs)


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
