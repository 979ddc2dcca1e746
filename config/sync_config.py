"""
Sync core configuration for the ledger mirror
"""

import os
from typing import Dict, Any

from config.config import STORAGE_PATH, CACHE_PREFIX


class SyncConfig:
    """Rate limiting, caching, polling and storage settings"""

    def __init__(self):
        # Rate limiting (one budget for the whole read surface)
        self.RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "40"))
        self.RATE_LIMIT_WINDOW_SECONDS = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.RATE_LIMIT_REQUEST_DELAY = float(os.getenv("RATE_LIMIT_REQUEST_DELAY", "0.1"))
        self.RATE_LIMIT_SAFETY_MARGIN = float(os.getenv("RATE_LIMIT_SAFETY_MARGIN", "0.1"))

        # Read calls
        self.READ_CALL_TIMEOUT = float(os.getenv("READ_CALL_TIMEOUT", "10"))

        # Cache
        self.CACHE_TTL = float(os.getenv("CACHE_TTL", "300"))  # 5 minutes
        self.CACHE_MEMORY_SIZE = int(os.getenv("CACHE_MEMORY_SIZE", "50"))
        self.CACHE_PREFIX = CACHE_PREFIX

        # Polling
        self.POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "30"))

        # Transaction history
        self.TX_RETENTION_DAYS = int(os.getenv("TX_RETENTION_DAYS", "7"))

        # Retry helper
        self.RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
        self.RETRY_INITIAL_DELAY = float(os.getenv("RETRY_INITIAL_DELAY", "1.0"))

        # Storage backend: "rocksdb" or "memory"
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "rocksdb").lower()
        self.STORAGE_PATH = STORAGE_PATH

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            "rate_limiting": {
                "max_requests": self.RATE_LIMIT_MAX_REQUESTS,
                "window_seconds": self.RATE_LIMIT_WINDOW_SECONDS,
                "request_delay": self.RATE_LIMIT_REQUEST_DELAY,
                "safety_margin": self.RATE_LIMIT_SAFETY_MARGIN,
            },
            "read_calls": {
                "timeout": self.READ_CALL_TIMEOUT,
            },
            "cache": {
                "ttl": self.CACHE_TTL,
                "memory_size": self.CACHE_MEMORY_SIZE,
                "prefix": self.CACHE_PREFIX,
            },
            "polling": {
                "interval": self.POLL_INTERVAL,
            },
            "transactions": {
                "retention_days": self.TX_RETENTION_DAYS,
            },
            "retry": {
                "max_attempts": self.RETRY_MAX_ATTEMPTS,
                "initial_delay": self.RETRY_INITIAL_DELAY,
            },
            "storage": {
                "backend": self.STORAGE_BACKEND,
                "path": self.STORAGE_PATH,
            },
        }


# Default configuration instance
sync_config = SyncConfig()
