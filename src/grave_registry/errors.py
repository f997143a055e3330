"""Exception types shared by the store, the sync transport and transcription."""


class GraveRegistryError(Exception):
    pass


class PersistenceFailure(GraveRegistryError):
    """The key/value substrate could not be read or written."""


class NotFound(GraveRegistryError):
    def __init__(self, record_id: str) -> None:
        super().__init__(f"No record with id {record_id!r}")
        self.record_id = record_id


class RecordValidationError(GraveRegistryError):
    pass


class TransportError(GraveRegistryError):
    """Network-level failure while talking to the sync endpoint."""


class TranscriptionError(GraveRegistryError):
    pass
