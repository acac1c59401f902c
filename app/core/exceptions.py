class LookboardException(Exception):
    """
    Base class for errors surfaced to API clients as {"message": ...}
    """
    status_code = 500

    def __init__(self, message: str = "Internal Server Error"):
        self.message = message
        super().__init__(self.message)


class ValidationException(LookboardException):
    """
    Exception raised when a required field is missing or invalid
    """
    status_code = 400

    def __init__(self, message: str = "Missing or invalid fields"):
        super().__init__(message)


class OwnershipException(LookboardException):
    """
    Exception raised when a user mutates an entity they did not create
    """
    status_code = 403

    def __init__(self, message: str = "You do not have permission to modify this item"):
        super().__init__(message)


class NotFoundException(LookboardException):
    """
    Exception raised when an entity or share instance is absent or expired
    """
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class VersionConflictException(LookboardException):
    """
    Exception raised when a commit was built against a stale data version
    """
    status_code = 409

    def __init__(self, message: str = "Your data changed on another device. Reload and try again."):
        super().__init__(message)


class StoreException(LookboardException):
    """
    Exception raised when a key/value store call fails
    """
    status_code = 500

    def __init__(self, message: str = "Storage backend error"):
        super().__init__(message)


class DataCorruptionException(LookboardException):
    """
    Exception raised when a directly requested record cannot be decoded
    """
    status_code = 500

    def __init__(self, message: str = "Stored record is corrupted"):
        super().__init__(message)
