"""
Visitas API: Custom Exception Hierarchy
=======================================

What:  Application-specific exceptions for each failure class of a request.
How:   Each exception carries a message and optional context dict. Global
       exception handlers (registered in main.py) turn them into JSON error
       responses with the right HTTP status.
Who:   Raised by the database layer and the visit service.

Exception Hierarchy:
    VisitasError (base)
    ├── ValidationError            → 400 Bad Request (missing fields, bad id)
    ├── NotFoundError              → 404 Not Found
    ├── ProcedureError             → 500 (failure reported by a stored procedure)
    └── DatabaseError              → 500 (driver/transport failure, generic message)
        └── DatabaseUnavailableError → 500 (connection not established yet)
"""

from typing import Any, Dict, List, Optional, Union


class VisitasError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where noted)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VisitasError):
    """
    Raised when client input fails the presence checks.

    HTTP:    400 Bad Request
    Details: `missing_fields` lists every required field that was absent or
             falsy, so the client can fix the request in one go.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        missing_fields: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if missing_fields:
            ctx["missing_fields"] = list(missing_fields)
        super().__init__(message=message, context=ctx)
        self.missing_fields = list(missing_fields or [])


class NotFoundError(VisitasError):
    """
    Raised when the requested visits do not exist.

    HTTP:    404 Not Found
    When:    The list procedure returned nothing usable, or the update
             procedure reported that no visit matched the identifier.
    """

    def __init__(
        self,
        message: str = "The requested resource was not found",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ProcedureError(VisitasError):
    """
    Raised when a stored procedure reports a failure in its status row.

    HTTP:    500 Internal Server Error
    The procedure's message and its diagnostic codes are forwarded verbatim
    to the client. They are produced by the procedure for that purpose.
    """

    def __init__(
        self,
        message: str = "The stored procedure reported an error",
        procedure: Optional[str] = None,
        sql_state: Optional[str] = None,
        mysql_errno: Optional[Union[int, str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if procedure:
            ctx["procedure"] = procedure
        super().__init__(message=message, context=ctx)
        self.procedure = procedure
        self.sql_state = sql_state
        self.mysql_errno = mysql_errno


class DatabaseError(VisitasError):
    """
    Raised when executing a stored procedure call fails at the driver level.

    HTTP:    500 Internal Server Error
    Security Note:
        The message returned to the client is always the generic, per-operation
        text. The driver error (SQL, connection details) stays in the context,
        which is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseUnavailableError(DatabaseError):
    """
    Raised when a request arrives before the database connection is ready.

    HTTP:    500 Internal Server Error
    When:    The listener starts accepting requests while the startup probe is
             still running, or after the probe gave up.
    """

    def __init__(
        self,
        message: str = (
            "Error interno del servidor: Conexión a la base de datos no establecida."
        ),
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
