class ExporterError(Exception):
    """Base class for every failure raised inside an export cycle."""


class CollectionError(ExporterError):
    """The snapshot pull from the collector failed."""


class MappingError(ExporterError):
    """Reserved for mapping failures. Current mapping rules never raise it."""


class BackendError(ExporterError):
    """A write call to the export backend failed."""

    def __init__(self, backend: str, message: str) -> None:
        super().__init__(f'{backend}: {message}')
        self.backend = backend
