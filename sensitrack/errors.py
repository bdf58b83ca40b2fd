from __future__ import annotations


class TrackerError(Exception):
    """Base error. `user_message` is safe to show as-is; str(exc) is for logs."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", user_message: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message:
            self.user_message = user_message


class ShardUnavailable(TrackerError):
    user_message = "Product search is unavailable right now. Please try again."

    def __init__(self, shard_id: int | None, detail: str = "") -> None:
        self.shard_id = shard_id
        super().__init__(detail or f"shard {shard_id} unavailable")


class TestAlreadyActive(TrackerError):
    user_message = "You can only run one test at a time."

    def __init__(self, active_test_id: str = "", detail: str = "") -> None:
        self.active_test_id = active_test_id
        super().__init__(detail or f"active test {active_test_id} already running")


class TestAlreadyInProgressForProduct(TestAlreadyActive):
    user_message = "A test for this product is already in progress."


class TestNotFound(TrackerError):
    user_message = "Test not found."


class TestAlreadyCompleted(TrackerError):
    user_message = "This test has already been completed."


class ProductNotFound(TrackerError):
    user_message = "Product information not found."


class StoreWriteFailed(TrackerError):
    user_message = "Could not save your changes. Please try again."


class StoreReadFailed(TrackerError):
    user_message = "Could not load your data. Please try again."


class InvalidNote(TrackerError):
    user_message = "Notes must be between 1 and 500 characters."


class NoteNotFound(TrackerError):
    user_message = "Note not found."
