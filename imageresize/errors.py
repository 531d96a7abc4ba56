class ImageResizeError(Exception):
    """Base class for every failure raised by the resize pipeline."""


class InvalidSignature(ImageResizeError):
    """Identifier is malformed or does not authenticate the target URL.

    Both cases carry the same message so callers cannot tell them apart.
    """

    def __init__(self) -> None:
        super().__init__("Not found")


class ConfigNotFound(ImageResizeError):
    """No stored resize config for the identifier (never stored, or expired)."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Unable to retrieve the configuration for {identifier}")
        self.identifier = identifier


class DirectoryCreateFailed(ImageResizeError):
    pass


class ResizeFailed(ImageResizeError):
    pass


class SourceNotFound(ImageResizeError):
    pass


class InvalidOptions(ImageResizeError, ValueError):
    pass
