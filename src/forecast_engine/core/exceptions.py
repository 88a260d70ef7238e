# src/forecast_engine/core/exceptions.py
"""
Forecast Engine Errors

Configuration problems (an unknown driver method, a driver missing a
field its method needs, an inconsistent opening position) abort a run.
Numerical conditions such as a non-converged circularity solve or a
roll-forward discrepancy are never raised; they are reported as data in
the forecast output.
"""


class ForecastError(Exception):
    """Base class for all forecast engine errors."""


class UnsupportedDriverMethod(ForecastError, ValueError):
    """A driver method tag (or driver object) is not valid for its category."""

    def __init__(self, category: str, method):
        self.category = category
        self.method = method
        super().__init__(f"Unsupported {category} method: {method!r}")


class MissingDriverParameter(ForecastError, ValueError):
    """A field required by the selected driver method was not supplied."""

    def __init__(self, method: str, parameter: str):
        self.method = method
        self.parameter = parameter
        super().__init__(f"{parameter} is required for {method}")


class InvalidBaseline(ForecastError, ValueError):
    """The historical baseline cannot seed the first forecast period."""
