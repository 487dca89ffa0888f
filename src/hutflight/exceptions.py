"""Exceptions raised by the hutflight library."""


class HutflightError(Exception):
    """Base exception for hutflight errors."""
    pass


class DegenerateRouteError(HutflightError):
    """Raised when a route has fewer than two points or zero length and cannot be flown."""
    pass


class TerrainUnavailableError(HutflightError):
    """Raised when a terrain height source cannot be opened."""
    pass
