"""Engine error taxonomy.

Only ``LocationsExhausted`` is meant to reach callers of the engine. The other
errors are raised by providers and adapters and recovered by the services
that call them.
"""


class WeatherEngineError(Exception):
    """Base exception for engine errors."""


class ProviderUnavailable(WeatherEngineError):
    """Raised when a weather or geocoding provider fails or returns unusable data."""


class HardwareUnavailable(WeatherEngineError):
    """Raised when platform geolocation is absent, denied or times out."""


class CacheCorruption(WeatherEngineError):
    """Raised when a persisted cache entry cannot be decoded."""


class LocationsExhausted(WeatherEngineError):
    """Raised when no saved or default location is left to fall back to."""
