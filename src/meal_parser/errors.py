"""Application error types."""

from uuid import UUID


class MealParserError(Exception):
    """Base class for application errors."""


class InputValidationError(MealParserError):
    """Raised when caller input violates a precondition."""


class RecordNotFoundError(MealParserError):
    """Raised when a record id is not in the store."""

    def __init__(self, record_id: UUID) -> None:
        super().__init__(f"No food entry with id {record_id}")
        self.record_id = record_id


class ExtractionUnavailableError(MealParserError):
    """Raised when the remote extraction channel cannot be used."""


class MalformedResponseError(ExtractionUnavailableError):
    """Raised when the remote extractor replies outside the contract."""
