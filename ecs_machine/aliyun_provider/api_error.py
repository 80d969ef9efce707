from contextlib import contextmanager
from typing import Optional

from loguru import logger
from Tea.exceptions import TeaException

from ..errors import PermanentRemoteError, RemoteError, TransientRemoteError

# codes that mean "retry later", independent of the HTTP status
TRANSIENT_CODES = {
    "IncorrectRouteEntryStatus",
    "IncorrectInstanceStatus.Initializing",
    "Throttling",
    "Throttling.User",
    "ServiceUnavailable",
    "InternalError",
}


def _status_code(exc: TeaException) -> Optional[int]:
    for attr in ("statusCode", "status_code"):
        value = getattr(exc, attr, None)
        if value is not None:
            return int(value)
    data = getattr(exc, "data", None)
    if isinstance(data, dict) and data.get("statusCode") is not None:
        return int(data["statusCode"])
    return None


def _request_id(exc: TeaException) -> Optional[str]:
    data = getattr(exc, "data", None)
    if isinstance(data, dict):
        return data.get("RequestId") or data.get("requestId")
    return None


def translate_error(operation: str, exc: TeaException) -> RemoteError:
    code = getattr(exc, "code", None)
    status = _status_code(exc)
    message = getattr(exc, "message", None) or str(exc)
    transient = (status is not None and status >= 500) or code in TRANSIENT_CODES
    cls = TransientRemoteError if transient else PermanentRemoteError
    return cls(operation, code=code, message=message, status_code=status, request_id=_request_id(exc))


@contextmanager
def api_call(operation: str):
    """Translate Tea SDK errors raised inside the block; anything else propagates unchanged."""
    try:
        yield
    except TeaException as exc:
        error = translate_error(operation, exc)
        logger.debug(f"{operation} raised {type(exc).__name__}: {error}")
        raise error from exc
