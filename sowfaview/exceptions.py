"""
Exception and warning types raised by the sowfaview package.
"""


class SowfaViewError(Exception):
    """Base class for errors raised by sowfaview."""


class FormatError(SowfaViewError, ValueError):
    """
    A probe file, cache artifact or profile file does not follow the expected layout.

    Raised for unparseable probe location headers, data rows whose column count
    does not match the declared probe count, and containers without usable arrays.
    """


class InvalidParameterError(SowfaViewError, ValueError):
    """A caller supplied an out-of-range or malformed analysis parameter."""


class DegenerateComputationWarning(RuntimeWarning):
    """The result is defined but not finite, e.g. turbulence intensity of a zero-mean signal."""
