"""
Custom exceptions for Podweave.

Exception Hierarchy:
- PodweaveError: Base exception for all Podweave-specific errors
  - KubernetesConnectionError: Raised when unable to connect to Kubernetes cluster
  - InvalidSelectorError: Raised when a label selector is empty or malformed
  - PodNotFoundError: Raised when no pod matches a selector
  - ConfigurationError: Raised when there's a configuration issue

Stream failures are never raised to consumers; they are reported through the
view state instead. These exceptions cover setup and input validation.

Example:
    ```python
    try:
        validate_selector("")
    except InvalidSelectorError as e:
        print(f"Selector validation failed: {e}")
    ```
"""


class PodweaveError(Exception):
    """Base exception for Podweave errors."""
    pass


class KubernetesConnectionError(PodweaveError):
    """Raised when unable to connect to Kubernetes cluster."""
    pass


class InvalidSelectorError(PodweaveError):
    """Raised when an invalid label selector is provided."""
    pass


class PodNotFoundError(PodweaveError):
    """Raised when no pod matches a label selector."""
    pass


class ConfigurationError(PodweaveError):
    """Raised when there's a configuration issue."""
    pass
