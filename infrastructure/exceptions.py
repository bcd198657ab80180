
class AppBaseException(Exception):
    """Base exception for the application."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error

class ConfigurationError(AppBaseException):
    """Raised when there is a configuration issue."""
    pass

class ChatPlatformError(AppBaseException):
    """Base exception for chat platform (Bot API) errors."""
    pass

class ChatPlatformMessageError(ChatPlatformError):
    """Raised when sending or editing a message fails."""
    def __init__(self, message: str, description: str = "", original_error: Exception = None):
        super().__init__(message, original_error)
        self.description = description or ""

    @property
    def is_parse_error(self) -> bool:
        return "can't parse entities" in self.description.lower()

class TitleLookupError(AppBaseException):
    """Raised when the title search service cannot be reached or answers garbage."""
    pass

class MaterializationError(AppBaseException):
    """Raised when a confirmed file cannot be transferred or copied to its target."""
    pass

class InvalidCustomPathError(AppBaseException):
    """Raised when a user-supplied path is not a complete file path."""
    pass

class UnknownTaskKindError(AppBaseException):
    """Raised when the queue holds a task no processor is registered for."""
    pass
