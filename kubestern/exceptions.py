"""
Custom exceptions for Kubestern.

This module defines the exception classes used throughout the Kubestern
application. Transport errors raised by the Kubernetes client are translated
into these types in ``kube.py`` so the rest of the code never handles
``ApiException`` or urllib3 errors directly.

Exception Hierarchy:
- KubesternError: Base exception for all Kubestern-specific errors
  - ConfigError: Raised when the resolved configuration is invalid
    - InvalidPatternError: Raised when an invalid regex pattern is provided
  - KubernetesConnectionError: Raised when the cluster client can't be loaded
  - DiscoveryError: Raised when listing pods fails
  - StreamOpenError: Raised when a following log read can't be opened
  - StreamReadError: Raised when a following log read breaks mid-stream
  - WriteError: Raised when the output sink can no longer be written to

Only ConfigError, KubernetesConnectionError and WriteError (and a
DiscoveryError on the very first tick) terminate the process; every other
failure is contained in the pod it happened to.

Example:
    ```python
    try:
        validate_regex_pattern("invalid[regex")
    except InvalidPatternError as e:
        print(f"Pattern validation failed: {e}")
    ```
"""


class KubesternError(Exception):
    """Base exception for Kubestern errors."""
    pass


class ConfigError(KubesternError):
    """Raised when there's a configuration issue."""
    pass


class InvalidPatternError(ConfigError):
    """Raised when an invalid regex pattern is provided."""
    pass


class KubernetesConnectionError(KubesternError):
    """Raised when unable to connect to Kubernetes cluster."""
    pass


class DiscoveryError(KubesternError):
    """Raised when the pod list can't be retrieved."""
    pass


class StreamOpenError(KubesternError):
    """Raised when a following log read can't be opened."""
    pass


class StreamReadError(KubesternError):
    """Raised when a following log read fails after it was opened."""
    pass


class WriteError(KubesternError):
    """Raised when the output sink fails."""
    pass
