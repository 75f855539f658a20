"""Exceptions raised by the calculation engine."""


class TaxInputError(ValueError):
    """A calculation was called with inputs outside its documented domain."""


class RateTableError(ValueError):
    """The configured rate table is internally inconsistent."""
