# src/llmmemory/exceptions.py
"""
Custom exceptions for the llmmemory library.

This module defines a hierarchy of custom exception classes to provide
more specific error information and allow for targeted error handling
by applications using llmmemory.

Note that the memory store operations themselves never let these escape:
failures are reported through return values (``False``, ``None``, empty
lists). The exceptions are raised at construction/configuration time and
used internally by the backends to classify what went wrong before it is
logged.
"""

class LLMMemoryError(Exception):
    """Base class for all llmmemory specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in llmmemory."):
        super().__init__(message)

class ConfigError(LLMMemoryError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class StorageError(LLMMemoryError):
    """Base class for errors related to storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class MemoryStoreError(StorageError):
    """Raised for errors specific to memory store backends (e.g., connection failures)."""
    def __init__(self, backend: str = "Unknown", message: str = "Memory store error."):
        self.backend = backend
        super().__init__(f"Error with memory store backend '{backend}': {message}")

class SerializationError(StorageError):
    """Raised when a stored record cannot be encoded or decoded."""
    def __init__(self, key: str = "Unknown", message: str = "Serialization error."):
        self.key = key
        super().__init__(f"{message} Key: '{key}'")
