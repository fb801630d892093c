class AutoArchiverError(Exception):
    """Base error for the project."""

class InvalidPathError(AutoArchiverError):
    pass

class InsufficientSpaceError(AutoArchiverError):
    pass

class ConfigError(AutoArchiverError):
    pass

class MoveError(AutoArchiverError):
    pass
