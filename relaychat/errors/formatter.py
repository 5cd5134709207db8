"""ChatError exception and JSON rendering for request-boundary failures.

Request-boundary errors short-circuit before any side effect and are
rendered as ``{"code", "message", "cause"}`` JSON with the registry's
HTTP status.
"""

from dataclasses import dataclass

from fastapi.responses import JSONResponse

from relaychat.errors.registry import get_error


@dataclass
class ChatError(Exception):
    """Application error with code, status, and message.

    Attributes:
        code: Error code in "<type>:<surface>" format.
        message: Human-readable error message.
        status_code: HTTP status to return.
        remediation: Action user should take to resolve.
        cause: Optional detail about what triggered the error.
    """

    code: str
    message: str
    status_code: int = 500
    remediation: str = ""
    cause: str | None = None

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, cause: str | None = None) -> "ChatError":
        """Create error from registry code.

        Args:
            code: Error code in "<type>:<surface>" format.
            cause: Optional detail appended to the response body.

        Returns:
            ChatError instance. Unknown codes map to a generic 500.
        """
        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                message="Something went wrong. Please try again later.",
                status_code=500,
                remediation="Contact support.",
                cause=cause,
            )
        return cls(
            code=error_def.code,
            message=error_def.message,
            status_code=error_def.status_code,
            remediation=error_def.remediation,
            cause=cause,
        )

    @property
    def surface(self) -> str:
        """Surface portion of the code (e.g. 'chat' for 'forbidden:chat')."""
        _, _, surface = self.code.partition(":")
        return surface

    def to_dict(self) -> dict:
        """Render the JSON body for this error."""
        return {"code": self.code, "message": self.message, "cause": self.cause}

    def to_response(self) -> JSONResponse:
        """Render this error as a FastAPI JSONResponse."""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())
