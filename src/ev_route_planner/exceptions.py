class RoutePlannerError(Exception):
    """Base exception for route planning errors."""


class ExternalServiceError(RoutePlannerError):
    """Raised when an upstream API call fails."""


class InvalidLocationError(RoutePlannerError):
    """Raised when an input location cannot be resolved."""


class NoRouteFoundError(RoutePlannerError):
    """Raised when the routing service returns no usable route."""
