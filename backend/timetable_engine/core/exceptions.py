class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class InvalidOperationError(AppError):
    """Raised when a request is well-formed but not allowed in the current state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class AssignmentValidationError(AppError):
    """Raised when an assignment breaks a blocking business rule."""
    def __init__(self, errors: list[str]):
        message = errors[0] if errors else "Assignment is not valid"
        super().__init__(message, status_code=400, details={"errors": list(errors)})
        self.errors = list(errors)

class ConfirmationRequiredError(AppError):
    """Raised when warnings exist and the caller did not pass override_warnings."""
    def __init__(self, warnings: list[str]):
        super().__init__(
            "Please confirm the following warnings",
            status_code=400,
            details={"warnings": list(warnings), "requiresConfirmation": True},
        )
        self.warnings = list(warnings)

class SlotConflictError(AppError):
    """Raised when a slot placement collides with existing slots or workload caps."""
    def __init__(self, conflicts: list[dict]):
        super().__init__("Conflicts detected", status_code=409, details={"conflicts": conflicts})
        self.conflicts = conflicts

class DuplicateAssignmentError(AppError):
    """Raised when a storage uniqueness constraint rejects a write."""
    def __init__(self, message: str):
        super().__init__(message, status_code=409)
