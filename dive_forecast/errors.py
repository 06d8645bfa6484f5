"""Exceptions raised by the forecast pipeline and its clients."""


class ForecastError(Exception):
    """Base class for errors that abort a pipeline run for one site."""

    pass


class SiteNotFoundError(ForecastError):
    """Exception raised when a site id is not in the site database."""

    pass


class LocationNotFoundError(ForecastError):
    """Exception raised when no upstream location is within the search radius."""

    pass


class SwellCapabilityUnavailableError(ForecastError):
    """Exception raised when neither the nearest nor the fallback location has swell data."""

    pass


class UpstreamUnavailableError(ForecastError):
    """Exception raised for network, timeout or non-2xx upstream failures."""

    pass


class UpstreamPayloadError(UpstreamUnavailableError):
    """Exception raised when an upstream payload does not match the expected schema."""

    pass


class RequestBudgetExceededError(UpstreamUnavailableError):
    """Exception raised when the daily upstream request budget is spent."""

    pass


class RefreshTimeoutError(UpstreamUnavailableError):
    """Exception raised when a caller stops waiting on an in-flight refresh."""

    pass


class IncompleteSeriesError(ForecastError):
    """Exception raised when normalization cannot build a complete series."""

    pass


class CacheClosedError(ForecastError):
    """Exception raised when a refresh is requested from a closed cache."""

    pass
