class ActionError(ValueError):
    """Raised when an admin action cannot be applied to the requested object."""
