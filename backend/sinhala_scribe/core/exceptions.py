from typing import Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base API exception with status code and detail"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: str = "error",
        headers: dict = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code


class CredentialsException(BaseAPIException):
    """Exception for invalid credentials"""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            code="invalid_credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(BaseAPIException):
    """Exception for resource not found"""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            code="not_found",
        )


class InsufficientCreditsError(BaseAPIException):
    """Exception for insufficient credits"""

    def __init__(self, detail: str = "Insufficient credits"):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail,
            code="insufficient_credits",
        )


class PayloadTooLargeError(BaseAPIException):
    """Exception for oversized audio payloads"""

    def __init__(self, detail: str = "Audio payload too large"):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
            code="payload_too_large",
        )


class ExternalServiceError(BaseAPIException):
    """Exception for upstream provider failures"""

    def __init__(self, service: str, detail: str = "External service error"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{service}: {detail}",
            code="external_service_error",
        )


class GatewayTimeoutError(BaseAPIException):
    """Exception for upstream provider timeouts"""

    def __init__(self, service: str, detail: str = "Request timed out"):
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"{service}: {detail}",
            code="gateway_timeout",
        )


class ServiceMisconfiguredError(BaseAPIException):
    """Exception for missing server-side configuration"""

    def __init__(self, detail: str = "Service is not configured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code="service_misconfigured",
        )


class DatabaseError(BaseAPIException):
    """Exception for database failures"""

    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            code="database_error",
        )


# Domain errors shared by the audio layer, the providers and the client pipeline


class ScribeError(Exception):
    """Base exception for transcription pipeline errors"""


class DecodeError(ScribeError):
    """Raised when an audio source cannot be parsed or has no usable duration"""


class AudioValidationError(DecodeError):
    """Raised when an audio source has an unsupported type or is too large"""


class TranscriptionTimeout(ScribeError):
    """Raised when a transcription call exceeds its deadline"""


class TranscriptionProviderError(ScribeError):
    """Raised on a non-2xx response or transport failure from a transcription backend"""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class InsufficientCredit(ScribeError):
    """Raised when the metering service refuses a segment for lack of credit"""


class EstimationError(ScribeError):
    """Raised when the pre-flight credit estimate cannot be obtained"""


class PersistenceError(ScribeError):
    """Raised when a finished transcript cannot be saved"""


class PipelineStateError(ScribeError):
    """Raised on an illegal pipeline state transition"""


class TranscriptionFailed(ScribeError):
    """Raised when a run ends without any transcript text"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
