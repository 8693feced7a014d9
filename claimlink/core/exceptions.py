"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")
        self.entity = entity
        self.current = current
        self.target = target


class NotFoundError(AppError):
    """Raised when a referenced record does not exist."""

    entity = "Record"

    def __init__(self, entity_id, message: str = None):
        super().__init__(message or f"{self.entity} not found: {entity_id}")
        self.entity_id = entity_id


class DocumentNotFoundError(NotFoundError):
    """Raised when a document is not found."""
    entity = "Document"


class ClaimNotFoundError(NotFoundError):
    entity = "Claim"


class AssignmentNotFoundError(NotFoundError):
    entity = "Assignment"


class DraftClaimNotFoundError(NotFoundError):
    entity = "Draft claim"


class IllnessNotFoundError(NotFoundError):
    entity = "Illness"


class MatchingError(AppError):
    """Raised when scoring fails unexpectedly during a matching pass."""
    pass


class RematchInProgressError(AppError):
    """Raised when a batch rematch is requested while another is running."""
    pass
