"""Transaction sync and categorization service for a personal finance tracker."""

__version__ = "0.1.0"
