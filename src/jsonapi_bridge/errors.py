"""Error types raised by extractors, loaders and converters."""


class BridgeError(Exception):
    """Base class for all jsonapi-bridge errors."""


class NotFound(BridgeError):
    """An input file does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"File not found: {path}")


class MissingDeclaration(BridgeError):
    """Source text contains no class declaration."""


class ConversionWarning(BridgeError):
    """A single attribute, relationship or model could not be converted.

    Raised by element-level helpers and always caught by the enclosing loop,
    which records the message in the result's ``warnings`` list.
    """


class ConversionFailure(BridgeError):
    """The input does not have the shape a converter needs at all."""
