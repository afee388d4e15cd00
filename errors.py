"""Exception classes for the file store."""


class FileDropError(Exception):
    """
    Base exception class for all file store errors.
    """
    pass


class NotFoundError(FileDropError):
    """
    Raised when a file id or blob does not exist.
    """
    pass


class SessionNotFoundError(NotFoundError):
    """
    Raised when an upload id has no staging area.
    """
    pass


class IncompleteUploadError(FileDropError):
    """
    Raised at finalize when one or more chunk indices were never received.
    """

    def __init__(self, upload_id: str, missing: list[int], total: int):
        super().__init__(f"upload {upload_id} is missing {len(missing)} of {total} chunks")
        self.upload_id = upload_id
        self.missing = missing
        self.total = total


class IOFailureError(FileDropError):
    """
    Raised when the filesystem refuses a write (disk full, permissions, ...).
    """
    pass


class DuplicateIdentifierError(FileDropError):
    """
    Raised when inserting a descriptor whose id already exists.
    """
    pass


class UploadStateError(FileDropError):
    """
    Raised when an upload session is not in a state that allows the operation.
    """
    pass
