"""Exceptions raised by the vaccination EDA pipeline."""


class DateParseError(ValueError):
    """A date column holds values that do not match its declared format."""

    def __init__(self, column: str, fmt: str, failures: int, examples: list):
        self.column = column
        self.fmt = fmt
        self.failures = failures
        self.examples = examples
        super().__init__(
            f"{failures} value(s) in column {column!r} do not match format "
            f"{fmt!r} (e.g. {examples})"
        )


class DuplicateIdentifierError(ValueError):
    """More than one patient row shares an identifier."""


class DataQualityError(ValueError):
    """Required values are missing after conversion."""
