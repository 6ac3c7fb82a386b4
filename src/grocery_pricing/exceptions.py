"""Exceptions for grocery pricing package."""

class PricingError(Exception):
    """Base class for errors raised by the pricing engine."""
    pass


class RuleTableError(PricingError):
    """Raised when a JSON rule table is missing or does not validate."""
    pass


class SourceUnavailableError(PricingError):
    """Raised when a price source cannot answer (cache, feed or dataset)."""
    pass


class ReferenceDatasetError(SourceUnavailableError):
    """Raised when the government price file cannot be read or parsed."""
    pass
