class ScorekeeperError(Exception):
    pass


class StorageError(ScorekeeperError):
    pass


class StorageDecodeError(StorageError):
    """Stored collection exists but cannot be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Cannot decode collection '{key}': {reason}")
        self.key = key
        self.reason = reason
