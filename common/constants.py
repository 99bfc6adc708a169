"""Project-wide constants for file-share writes."""

MAX_RANGE_SIZE_BYTES: int = 4 * 1024 * 1024  # 4 MiB per range upload

DEFAULT_REQUEST_TIMEOUT_SECONDS: float = 30.0
