from typing import List, Optional


class EcsMachineError(Exception):
    pass


class ConfigurationError(EcsMachineError, ValueError):
    """Invalid machine configuration, raised before any remote call."""


class RemoteError(EcsMachineError):
    def __init__(self, operation: str, code: Optional[str] = None, message: str = "",
                 status_code: Optional[int] = None, request_id: Optional[str] = None):
        self.operation = operation
        self.code = code
        self.message = message
        self.status_code = status_code
        self.request_id = request_id
        super().__init__(f"{operation} failed: code={code}, status={status_code}, message={message}")


class TransientRemoteError(RemoteError):
    pass


class PermanentRemoteError(RemoteError):
    pass


class RetryExhaustedError(EcsMachineError):
    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to {operation} after {attempts} attempts: {last_error}")


class WaitTimeoutError(EcsMachineError, TimeoutError):
    def __init__(self, target: str, elapsed: float, subject: str = ""):
        self.target = target
        self.elapsed = elapsed
        self.subject = subject
        what = f"{subject} to be" if subject else "for"
        super().__init__(f"Timeout waiting {what} '{target}' after {elapsed:.1f}s")


class TeardownError(EcsMachineError):
    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")


class InstanceDeleteError(EcsMachineError):
    def __init__(self, instance_id: str, cause: BaseException, ledger: Optional[List[TeardownError]] = None):
        self.instance_id = instance_id
        self.cause = cause
        self.ledger = ledger or []
        super().__init__(f"Unable to delete instance {instance_id}: {cause}")


class ProvisionError(EcsMachineError):
    def __init__(self, machine_name: str, step: str, cause: BaseException,
                 rollback_error: Optional[BaseException] = None,
                 rollback_ledger: Optional[List[TeardownError]] = None):
        self.machine_name = machine_name
        self.step = step
        self.cause = cause
        self.rollback_error = rollback_error
        # cleanup steps that failed while the instance was rolled back
        self.rollback_ledger = rollback_ledger or []
        msg = f"{machine_name} | Failed at {step}: {cause}"
        if rollback_error is not None:
            msg += f" (rollback also failed: {rollback_error})"
        elif self.rollback_ledger:
            msg += " (rollback left resources behind: " + "; ".join(str(f) for f in self.rollback_ledger) + ")"
        super().__init__(msg)
