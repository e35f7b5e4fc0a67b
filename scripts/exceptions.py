"""
Exceptions raised by the pipeline.

Per-field parse errors (MalformedDateError, MalformedCurrencyError) are
recoverable under the "coerce" policy. Everything else stops the run.
"""

from typing import Optional, Any


class MoviePipelineError(Exception):
    """Base class for all pipeline errors."""


class FieldParseError(MoviePipelineError):
    """A single field of a single record could not be parsed."""

    reason = "could not parse"

    def __init__(self, value: Any, column: Optional[str] = None, row: Optional[int] = None):
        self.value = value
        self.column = column
        self.row = row
        super().__init__(self._message())

    def _message(self) -> str:
        where = []
        if self.row is not None:
            where.append(f"row {self.row}")
        if self.column is not None:
            where.append(f"column '{self.column}'")
        location = f" ({', '.join(where)})" if where else ""
        return f"{self.reason}: {self.value!r}{location}"

    def at(self, row: int, column: str) -> 'FieldParseError':
        """Attach the record position once the caller knows it."""
        self.row = row
        self.column = column
        self.args = (self._message(),)
        return self


class MalformedDateError(FieldParseError):
    """Release date text is not a day-month-year date."""

    reason = "malformed date"


class MalformedCurrencyError(FieldParseError):
    """Currency text has non-numeric residue after stripping symbols and separators."""

    reason = "malformed currency"


class SchemaMismatchError(MoviePipelineError):
    """Record layout does not match the expected movie columns."""


class StoreUnavailableError(MoviePipelineError):
    """The database cannot be opened or created."""


class MissingTableError(MoviePipelineError):
    """A table the step depends on does not exist."""
