"""Custom exceptions for the storefront application."""


class StorefrontError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(StorefrontError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(StorefrontError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class InsufficientStockError(BusinessLogicError):
    """Raised when a movement would drive stock below zero."""
    def __init__(self, product_id, current, requested):
        self.product_id = product_id
        self.current = current
        self.requested = requested
        message = f"Insufficient stock. Current: {current}, Requested: {requested}"
        super().__init__(
            message,
            status_code=409,
            payload={'product_id': product_id, 'current': current, 'requested': requested}
        )


class StoreError(StorefrontError):
    """Raised when the relational store fails during a write."""
    def __init__(self, message="Store operation failed", payload=None):
        super().__init__(message, 503, payload)
