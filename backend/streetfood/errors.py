"""Error types surfaced by the sync engine and its collaborators."""


class StreetFoodError(Exception):
    """Base error. ``user_message`` is safe to show to the person using the app."""

    user_message = "Something went wrong."

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(detail or self.user_message)


class NotAuthenticated(StreetFoodError):
    user_message = "You must be logged in to do this."


class UploadFailed(StreetFoodError):
    user_message = "Failed to upload photo to cloud."


class StoreUnavailable(StreetFoodError):
    user_message = "Network connection error. Please check your internet."


class NotFound(StreetFoodError):
    user_message = "The requested data was not found."


class BlobStoreError(StreetFoodError):
    """Raised by blob store adapters; the engine decides whether it is fatal."""

    user_message = "Photo storage is unavailable."
