"""
Custom exception classes for the ledger sync core
"""

class SyncError(Exception):
    """Base exception for sync operations"""
    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or "SYNC_ERROR"

class ValidationError(SyncError):
    """Input validation failed"""
    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)

class CodecError(ValidationError):
    """Clarity value could not be encoded or decoded"""
    def __init__(self, message: str):
        super().__init__(message, "CODEC_ERROR")

class NetworkError(SyncError):
    """Network-related errors"""
    def __init__(self, message: str, code: str = "NETWORK_ERROR"):
        super().__init__(message, code)

class RequestTimeoutError(NetworkError):
    """External call did not settle in time"""
    def __init__(self, function_name: str, timeout: float):
        message = (
            f"Request timed out after {timeout}s calling {function_name}: "
            "the contract or network is unreachable"
        )
        super().__init__(message, "TIMEOUT_ERROR")
        self.function_name = function_name
        self.timeout = timeout

class RateLimitError(NetworkError):
    """Upstream API rejected the request for exceeding its rate limit"""
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, "RATE_LIMIT_ERROR")

class ContractCallError(SyncError):
    """The remote contract or node rejected the call"""
    def __init__(self, message: str, cause: str = None):
        super().__init__(message, "CONTRACT_ERROR")
        self.cause = cause or message

class StorageError(SyncError):
    """Blob store operation errors"""
    def __init__(self, message: str):
        super().__init__(message, "STORAGE_ERROR")
