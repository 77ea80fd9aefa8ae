"""
Utility modules for inivault.

Provides common utilities including:
- Classified error handling with verbose logging
- Error aggregation for diagnostics
"""

from .error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ErrorAggregator,
    get_error_aggregator,
    classify_error,
    determine_severity,
    handle_error,
    safe_execute,
)

__all__ = [
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ErrorAggregator',
    'get_error_aggregator',
    'classify_error',
    'determine_severity',
    'handle_error',
    'safe_execute',
]
