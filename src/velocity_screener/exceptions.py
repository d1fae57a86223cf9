"""
Exception hierarchy for the Velocity momentum screener.

Data-quality problems inside the phase pipeline never raise: they are
absorbed into a degraded classification for the affected symbol and, when
unexpected, recorded as a ProcessingError. The exceptions below are raised
by the collaborators around the pipeline (market data, configuration,
locking, snapshot persistence).
"""

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """Categorizes the severity of errors for handling decisions."""

    CRITICAL = "critical"
    """Scan should stop; this error prevents meaningful continuation"""

    WARNING = "warning"
    """Log but continue; the affected symbol is degraded"""

    INFO = "info"
    """Track but don't alarm; this is informational"""


@dataclass
class ProcessingError:
    """
    Structured error record for a failure absorbed during a scan.

    Collected per run so failures can be reported alongside the results
    without aborting the remaining symbols.
    """

    symbol: str
    """Symbol being evaluated when the error occurred"""

    error_type: str
    """Category of error (e.g., "INDICATOR_ERROR", "EVALUATION_ERROR")"""

    message: str
    """Human-readable error message"""

    severity: ErrorSeverity
    """How serious is this error? CRITICAL/WARNING/INFO"""

    traceback_str: Optional[str] = None
    """Full traceback for debugging (only for CRITICAL/WARNING)"""

    context: dict = field(default_factory=dict)
    """Additional context data (phase, bar count, etc.)"""

    @classmethod
    def from_exception(
        cls,
        symbol: str,
        error_type: str,
        exception: Exception,
        severity: ErrorSeverity,
        context: Optional[dict] = None,
    ) -> "ProcessingError":
        """
        Create ProcessingError from a caught exception.

        Args:
            symbol: Symbol being processed
            error_type: Custom error category
            exception: The exception that was caught
            severity: How to categorize this error
            context: Optional additional context data

        Returns:
            ProcessingError with traceback automatically extracted
        """
        tb_str = traceback.format_exc() if severity in (ErrorSeverity.CRITICAL, ErrorSeverity.WARNING) else None
        return cls(
            symbol=symbol,
            error_type=error_type,
            message=str(exception),
            severity=severity,
            traceback_str=tb_str,
            context=context or {},
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "symbol": self.symbol,
            "error_type": self.error_type,
            "message": self.message,
            "severity": self.severity.value,
            "traceback": self.traceback_str,
            "context": self.context,
        }


# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class ScreenerException(Exception):
    """
    Base exception for all screener errors.

    Inheriting from this allows catching all framework errors:
        try:
            ...
        except ScreenerException as e:
            ...
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__


class DataProcessingError(ScreenerException):
    """Base class for errors while obtaining or transforming price data."""
    pass


class ConfigurationError(ScreenerException):
    """Base class for configuration/setup issues."""
    pass


class PipelineError(ScreenerException):
    """Base class for scan orchestration errors."""
    pass


# ============================================================================
# DATA EXCEPTIONS
# ============================================================================

class MarketDataError(DataProcessingError):
    """
    Raised when the market-data provider cannot deliver a usable batch.

    Example:
        raise MarketDataError("yfinance returned an empty frame for 120 symbols")
    """
    pass


# ============================================================================
# CONFIGURATION EXCEPTIONS
# ============================================================================

class EnvConfigError(ConfigurationError):
    """
    Raised when an environment variable holds an unusable value.

    Example:
        raise EnvConfigError("SCREENER_MAX_WORKERS must be an integer, got 'many'")
    """
    pass


# ============================================================================
# PIPELINE EXECUTION EXCEPTIONS
# ============================================================================

class LockTimeoutError(PipelineError):
    """
    Raised when the market-data lock cannot be acquired in time.

    Example:
        raise LockTimeoutError("screener timed out waiting for lock held by price-updater")
    """
    pass


class SnapshotWriteError(PipelineError):
    """
    Raised when a snapshot summary cannot be written.

    Only raised by the synchronous writer; the background path logs it.
    """
    pass
