"""Custom exceptions for the marketplace application."""


class MarketplaceError(Exception):
    """Base exception for all application errors."""
    code = 'internal_error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['status'] = 'error'
        return rv


class ValidationError(MarketplaceError):
    """Malformed or out-of-range input."""
    code = 'validation_error'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class AuthenticationError(MarketplaceError):
    code = 'unauthenticated'

    def __init__(self, message="Invalid credentials", payload=None):
        super().__init__(message, 401, payload)


class ForbiddenError(MarketplaceError):
    """Raised when the actor lacks role or tenant scope for an action."""
    code = 'forbidden'

    def __init__(self, message="You are not allowed to perform this action", payload=None):
        super().__init__(message, 403, payload)


class NotFoundError(MarketplaceError):
    """Exception raised when a resource is not found."""
    code = 'not_found'

    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ConflictError(MarketplaceError):
    """Unique-constraint violation (duplicate SKU, email, category name)."""
    code = 'conflict'

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class InvalidStateTransition(MarketplaceError):
    """Workflow action attempted from an incompatible status."""
    code = 'invalid_state_transition'

    def __init__(self, message, current_status=None, action=None):
        payload = {}
        if current_status is not None:
            payload['current_status'] = current_status
        if action is not None:
            payload['action'] = action
        super().__init__(message, 409, payload)
        self.current_status = current_status
        self.action = action


class NoPriceAvailable(MarketplaceError):
    """
    Price resolution found neither a private nor a default price.
    
    Not a failure: the HTTP layer renders it as "price on request".
    """
    code = 'no_price_available'

    def __init__(self, product_id=None, message="Price on request"):
        super().__init__(message, 200, {'product_id': str(product_id) if product_id else None})
        self.product_id = product_id
