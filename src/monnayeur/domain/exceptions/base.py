"""
Base domain exceptions.
"""


class MonnayeurException(Exception):
    """Base exception for all Monnayeur domain errors."""

    def __init__(self, message: str, code: str = None):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class EntityNotFoundError(MonnayeurException):
    """Raised when entity not found in store."""

    def __init__(self, entity_type: str, entity_id: str):
        """
        Initialize entity not found error.

        Args:
            entity_type: Type of entity (e.g., "ClaimRecord")
            entity_id: Entity identifier
        """
        super().__init__(f"{entity_type} not found: {entity_id}", "NOT_FOUND")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationError(MonnayeurException, ValueError):
    """Raised when input fails domain validation."""

    def __init__(self, field: str, reason: str):
        """
        Initialize validation error.

        Args:
            field: Field name that failed validation
            reason: Validation failure reason
        """
        super().__init__(f"Invalid {field}: {reason}", "VALIDATION_ERROR")
        self.field = field
        self.reason = reason
