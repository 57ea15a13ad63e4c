from errno import EINVAL, EIO


class WidgetDBError(Exception):
    """Base error; ``errno`` is the negative code handed back to the host."""

    errno = -EIO

    def __init__(self, message, code=None):
        super().__init__(message)
        if code is not None:
            self.errno = code


class ManifestError(WidgetDBError, ValueError):
    errno = -EINVAL


class StoreError(WidgetDBError):
    errno = -EIO
