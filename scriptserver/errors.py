"""Error types raised inside the sync engine.

Each carries the HTTP status the admin API answers with.
"""


class ScriptServerError(Exception):
    status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(ScriptServerError):
    status = 400


class NotFoundError(ScriptServerError):
    status = 404


class ConflictError(ScriptServerError):
    status = 409


class MaterializeError(ScriptServerError):
    """Filesystem or Caddyfile side effect could not be applied."""


class PersistenceError(ScriptServerError):
    """The catalog file could not be written."""


class CatalogLoadError(ScriptServerError):
    """The catalog file is missing or malformed; the service cannot start."""
