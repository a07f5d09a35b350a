"""
Custom exception hierarchy for Roadweave.

This module defines the exceptions raised by the terrain and road network
generators. Growth-time rejections of candidate segments are ordinary control
flow and never surface as exceptions.
"""

from typing import Any, Dict, List, Optional


class RoadweaveException(Exception):
    """
    Base exception for all Roadweave-specific errors.

    All custom exceptions should inherit from this base class to allow
    for unified exception handling by callers.

    Attributes:
        error_code: String identifier for the error type
        message: User-friendly error message
        details: Technical details for logging/debugging
        suggestions: Optional list of resolution suggestions
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize RoadweaveException.

        Args:
            message: User-friendly error message
            error_code: String identifier for the error type
            details: Technical details for logging
            suggestions: List of suggestions for resolution
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to a dictionary.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "suggestions": self.suggestions,
        }

    def __str__(self) -> str:
        """String representation of the exception."""
        return f"{self.error_code}: {self.message}"

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}')"
        )


class ConfigurationError(RoadweaveException, ValueError):
    """
    Raised when a generator parameter is out of range.

    Used for negative counts, probabilities outside [0, 1], empty bounds and
    similar mistakes. Raised at construction time; values are never clamped.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: User-friendly error message
            config_key: Name of the offending configuration field
            value: The rejected value
            details: Technical details about the configuration error
            suggestions: List of suggestions for resolution
        """
        error_details = details or {}
        if config_key:
            error_details["config_key"] = config_key
        if value is not None:
            error_details["value"] = value

        default_suggestions = [
            "Check the parameter ranges documented on the configuration class",
        ]

        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details=error_details,
            suggestions=suggestions or default_suggestions,
        )


class InvalidIndexError(RoadweaveException, IndexError):
    """
    Raised when a node id outside the network is queried.
    """

    def __init__(
        self,
        index: Any,
        size: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize InvalidIndexError.

        Args:
            index: The requested node id
            size: Number of nodes in the network
            details: Technical details
        """
        error_details = details or {}
        error_details["index"] = index
        error_details["node_count"] = size

        super().__init__(
            message=f"Node id {index!r} is out of range for a network of {size} nodes",
            error_code="INVALID_INDEX",
            details=error_details,
            suggestions=[f"Use ids in range(0, {size})"],
        )


class NoDataError(RoadweaveException):
    """
    Raised by strict elevation lookups when a point has no terrain data.

    Regular elevation queries return None instead; this exception exists for
    callers that prefer to fail loudly.
    """

    def __init__(
        self,
        x: float,
        y: float,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize NoDataError.

        Args:
            x: Query x coordinate
            y: Query y coordinate
            details: Technical details
        """
        error_details = details or {}
        error_details["x"] = x
        error_details["y"] = y

        super().__init__(
            message=f"No elevation data at ({x}, {y})",
            error_code="NO_DATA",
            details=error_details,
            suggestions=[
                "Query inside the convex hull of the terrain samples",
                "Use elevation_at() and branch on None",
            ],
        )
