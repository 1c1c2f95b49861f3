"""
Error taxonomy

Every rejection a caller can act on has its own class and a readable message.
`context` carries extra machine-usable fields (e.g. next_claim_at) that are
merged into the JSON error body.
"""

from typing import Any, Dict


class ArcadeError(Exception):
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.context}


class AuthenticationError(ArcadeError):
    """Recovered signer does not match the claimed address."""
    status_code = 401


class FormatError(ArcadeError):
    """Signed text does not match the template for its purpose."""
    status_code = 401


class ExpiredError(ArcadeError):
    status_code = 401


class NotFoundError(ArcadeError):
    status_code = 404


class ConflictError(ArcadeError):
    """Cooldown not elapsed or reward already claimed."""
    status_code = 409


class ValidationError(ArcadeError):
    status_code = 400
