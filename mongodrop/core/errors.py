from __future__ import annotations


class MongodropError(Exception):
    """Base error for mongodrop."""

    code = "INTERNAL_ERROR"
    status_code = 500


class ConfigError(MongodropError):
    """Missing or invalid startup configuration."""

    code = "CONFIG_ERROR"


class AuthenticationMissingError(MongodropError):
    """No bearer credential was supplied."""

    code = "AUTH_UNAUTHORIZED"
    status_code = 401


class AuthenticationInvalidError(MongodropError):
    """Bearer credential failed verification."""

    code = "AUTH_INVALID_TOKEN"
    status_code = 401


class AuthorizationDeniedError(MongodropError):
    """Verified credential lacks a privileged role."""

    code = "AUTH_FORBIDDEN"
    status_code = 403


class InvalidScheduleError(MongodropError):
    """Requested schedule interval is not supported."""

    code = "INVALID_SCHEDULE"
    status_code = 400


class DumpFailedError(MongodropError):
    """The dump subprocess failed."""

    code = "DUMP_FAILED"


class UploadFailedError(MongodropError):
    """Uploading a staged archive to the object store failed."""

    code = "UPLOAD_FAILED"

    def __init__(self, message: str, *, staging_path: str | None = None) -> None:
        super().__init__(message)
        # Staged archive left on disk as a local fallback copy.
        self.staging_path = staging_path


class DownloadFailedError(MongodropError):
    """Fetching an archive from the object store failed."""

    code = "DOWNLOAD_FAILED"


class RestoreFailedError(MongodropError):
    """The restore subprocess failed."""

    code = "RESTORE_FAILED"


class ListingFailedError(MongodropError):
    """Listing archives in the object store failed."""

    code = "LISTING_FAILED"


class StorageError(MongodropError):
    """Object store request failure."""

    code = "STORAGE_ERROR"


class StorageNotFoundError(StorageError):
    """Requested object does not exist in the store."""

    code = "STORAGE_NOT_FOUND"


class ServiceUnavailableError(MongodropError):
    """The backup coordinator has not been initialized."""

    code = "SERVICE_UNAVAILABLE"
    status_code = 503
