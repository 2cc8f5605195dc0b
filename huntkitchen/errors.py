"""
Taxonomie des erreurs métier de la boutique.
- Chaque sous-classe porte son code machine et son statut HTTP.
- Les handlers (huntkitchen.app_setup.exceptions) les traduisent en
  {"success": false, "error": "...", "code": "..."}.
"""
from typing import Any, Optional


class ShopError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ShopError):
    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(ShopError):
    code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(ShopError):
    code = "FORBIDDEN"
    status_code = 403


class NotFoundError(ShopError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(ShopError):
    code = "CONFLICT"
    status_code = 409


class InventoryError(ShopError):
    """details = liste des violations (voir huntkitchen.inventory.validator)."""
    code = "INVENTORY_ERROR"
    status_code = 409


class UpstreamError(ShopError):
    code = "UPSTREAM_ERROR"
    status_code = 502


class InternalError(ShopError):
    code = "INTERNAL_ERROR"
    status_code = 500
