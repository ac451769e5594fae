"""Storage errors."""


class PersistenceError(Exception):
    """An attempt could not be written or deleted; nothing was committed."""
    pass
