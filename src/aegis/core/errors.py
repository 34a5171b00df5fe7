"""
Error taxonomy shared by every component of the vault core.

Each error carries a fixed, user-facing ``message``. The command boundary
only ever shows that message; callers branch on the exception class.
"""


class VaultError(Exception):
    message = "Request failed"
    status_code = 400

    def __init__(self, detail: str | None = None):
        # detail is for logs and tests only, it never reaches the caller
        self.detail = detail or self.message
        super().__init__(self.detail)


# --- Validation ---

class ValidationError(VaultError):
    message = "Invalid input"
    status_code = 400


class DuplicateUser(ValidationError):
    message = "Username or email already exists"


# --- Authentication ---

class AuthError(VaultError):
    message = "Authentication failed"
    status_code = 401


class InvalidCredentials(AuthError):
    message = "Invalid username or password"


class InvalidSecondFactor(AuthError):
    message = "Invalid 2FA code"


class InvalidToken(AuthError):
    message = "Invalid session"


class ExpiredToken(AuthError):
    message = "Session expired"


# --- Storage ---

class NotFoundError(VaultError):
    message = "Credential not found"
    status_code = 404


class StorageError(VaultError):
    message = "Storage failure"
    status_code = 500
