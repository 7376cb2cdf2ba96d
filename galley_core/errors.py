class GalleyError(Exception):
    """Base error for Galley."""

    code = "INTERNAL_ERROR"


class NotFoundError(GalleyError):
    """Unknown device, order, recipe, ingredient or site."""

    code = "NOT_FOUND"


class ConflictError(GalleyError):
    """Illegal state transition or uniqueness violation."""

    code = "CONFLICT"


class ValidationError(GalleyError):
    """Input validation failure."""

    code = "INVALID_INPUT"


class CertificateError(GalleyError):
    """Key or certificate generation, signing or parsing failure."""

    code = "CERT_ERROR"


class PersistenceError(GalleyError):
    """A store read or write failed."""

    code = "PERSISTENCE_ERROR"


class AuthError(GalleyError):
    """Authentication or authorization failure."""

    code = "UNAUTHORIZED"


class ForbiddenError(GalleyError):
    """Authenticated caller is not allowed to act."""

    code = "FORBIDDEN"
