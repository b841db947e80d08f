"""Exceptions raised by logbind."""


class LogConfigurationException(RuntimeError):
    """
    No usable binding factory could be obtained, or a configured class is
    not a usable factory. The only error the binding registry propagates.
    """

    def __init__(self, message: str, class_name: str | None = None):
        super().__init__(message)
        self.class_name = class_name


class ClassNotFoundError(LookupError):
    """A name could not be resolved in an isolation context."""

    def __init__(self, name: str, context: object = None):
        super().__init__(f"Unable to locate '{name}' via context {context!r}")
        self.name = name
        self.context = context
