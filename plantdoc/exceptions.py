class DiagnosisError(Exception):
    """Base error for the diagnosis engine"""

    def __init__(self, message: str, debug_info=None):
        super().__init__(message)
        self.message = message
        self.debug_info = debug_info


class AIGatewayUnavailable(DiagnosisError):
    """AI gateway is not configured or disabled"""


class AIGatewayCallFailed(DiagnosisError):
    """AI call failed (network, timeout, provider error or unreadable answer)"""


class PersistenceFailure(DiagnosisError):
    """Backing store unreachable or rejected the operation"""

    def __init__(self, operation: str, cause: Exception = None):
        message = f"{operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause
