class InvalidInput(ValueError):
    """Predictors and responses do not describe the same samples."""


class DimensionMismatch(ValueError):
    """Parameters (or an index into them) do not fit the function."""


class RangeError(IndexError):
    """A batch range falls outside the available samples."""
