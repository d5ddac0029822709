class TransportError(RuntimeError):
    """The assistant stream could not be opened or produced no readable body."""


class PersistenceError(RuntimeError):
    """The item mutation endpoint rejected a write."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class UnknownItemError(KeyError):
    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"unknown assessment item: {self.item_id}"
