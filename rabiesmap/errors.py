"""
Error taxonomy
==============

- SourceLoadError: an input file is missing or unreadable. Fatal at startup.
- SchemaMismatchError: an expected column is absent (or a key is duplicated)
  after a reshape/select. Fatal: upstream schema drift.
- UnmappableCodeWarning: a country code has no canonical name.
- EmptyJoinResult: a (year, groups) selection has no rows. The view layer
  turns it into an explicit empty state.
"""


class RabiesMapError(Exception):
    """Base class for errors raised by rabiesmap."""


class SourceLoadError(RabiesMapError):
    def __init__(self, path, reason: str) -> None:
        super().__init__(f"Could not load {path}: {reason}")
        self.path = path
        self.reason = reason


class SchemaMismatchError(RabiesMapError, ValueError):
    pass


class EmptyJoinResult(RabiesMapError):
    pass


class UnmappableCodeWarning(UserWarning):
    pass
