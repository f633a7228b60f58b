"""
Input validation for Podweave.

This module validates user inputs and configuration values: label selectors,
namespaces, network settings, buffer sizes and the stream server URL.

Key Functions:
- validate_selector: Validates a Kubernetes label selector expression
- validate_namespace: Validates a namespace name
- validate_port: Validates port numbers (1-65535)
- validate_host: Validates host strings
- validate_capacity: Validates buffer capacities
- validate_tail_lines: Validates the per-pod history length
- validate_server_url: Validates the base URL of a stream server

All validation functions raise InvalidSelectorError or ConfigurationError with
a descriptive message when validation fails.

Example:
    ```python
    try:
        selector = validate_selector("app=web,tier!=cache")
        port = validate_port(8080)
    except (InvalidSelectorError, ConfigurationError) as e:
        print(f"Validation failed: {e}")
    ```
"""

import logging
import os
import re
from urllib.parse import urlsplit

from .exceptions import ConfigurationError, InvalidSelectorError

log = logging.getLogger('podweave.config')

# RFC 1123 label, which is what Kubernetes requires for namespace names
_NAMESPACE_RE = re.compile(r'^[a-z0-9]([-a-z0-9]*[a-z0-9])?$')
_URL_SCHEMES = ('http', 'https', 'ws', 'wss')


def validate_selector(selector: str) -> str:
    """
    Validate a label selector expression.

    Only shallow checks are done here; the API server remains the authority
    on selector syntax and reports anything else through an ``ERROR:`` frame.

    Args:
        selector: Label selector such as ``app=web`` or ``tier in (a,b)``

    Returns:
        str: The trimmed selector

    Raises:
        InvalidSelectorError: If the selector is empty, has an empty term or
            unbalanced parentheses

    Example:
        ```python
        validate_selector(" app=web ")   # Returns "app=web"
        validate_selector("app=web,,")   # Raises InvalidSelectorError
        ```
    """
    if not selector or not selector.strip():
        raise InvalidSelectorError("Selector cannot be empty")

    selector = selector.strip()
    if selector.count('(') != selector.count(')'):
        raise InvalidSelectorError(f"Unbalanced parentheses in selector: {selector}")

    depth = 0
    term = ''
    for ch in selector + ',':
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if ch == ',' and depth == 0:
            if not term.strip():
                raise InvalidSelectorError(f"Empty term in selector: {selector}")
            term = ''
            continue
        term += ch
    return selector


def validate_namespace(namespace: str) -> str:
    """Validate a namespace name (lowercase RFC 1123 label, max 63 chars)."""
    if not namespace or not namespace.strip():
        raise ConfigurationError("Namespace cannot be empty")
    namespace = namespace.strip()
    if len(namespace) > 63 or not _NAMESPACE_RE.match(namespace):
        raise ConfigurationError(f"Invalid namespace name: {namespace}")
    return namespace


def validate_port(port: int) -> int:
    """
    Validate port number for server binding.

    Args:
        port: Port number to validate (must be integer)

    Returns:
        int: The validated port number (unchanged if valid)

    Raises:
        ConfigurationError: If port is not an integer or outside valid range
    """
    if not isinstance(port, int) or isinstance(port, bool) or port < 1 or port > 65535:
        raise ConfigurationError(f"Port must be an integer between 1 and 65535, got: {port}")
    return port


def validate_host(host: str) -> str:
    """
    Validate host string for server binding.

    Args:
        host: Host string to validate (e.g., "localhost", "0.0.0.0", "example.com")

    Returns:
        str: The validated and trimmed host string

    Raises:
        ConfigurationError: If host is empty or too long
    """
    if not host or not host.strip():
        raise ConfigurationError("Host cannot be empty")

    host = host.strip()

    if len(host) > 253:  # DNS name length limit
        raise ConfigurationError("Host name too long")

    return host


def validate_capacity(capacity: int) -> int:
    """Validate a buffer capacity: a positive integer."""
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
        raise ConfigurationError(f"Buffer capacity must be a positive integer, got: {capacity}")
    return capacity


def validate_tail_lines(tail_lines: int) -> int:
    """Validate the number of history lines requested per pod (0 allowed)."""
    if not isinstance(tail_lines, int) or isinstance(tail_lines, bool) or tail_lines < 0:
        raise ConfigurationError(f"Tail lines must be a non-negative integer, got: {tail_lines}")
    return tail_lines


def validate_server_url(url: str) -> str:
    """
    Validate the base URL of a Podweave stream server.

    Accepts http, https, ws and wss URLs with a host. A trailing slash is
    removed so paths can be appended directly.

    Raises:
        ConfigurationError: If the URL is empty, has another scheme or no host
    """
    if not url or not url.strip():
        raise ConfigurationError("Server URL cannot be empty")
    url = url.strip().rstrip('/')
    parts = urlsplit(url)
    if parts.scheme not in _URL_SCHEMES:
        raise ConfigurationError(f"Server URL must start with one of {', '.join(s + '://' for s in _URL_SCHEMES)}, got: {url}")
    if not parts.netloc:
        raise ConfigurationError(f"Server URL has no host: {url}")
    return url


def int_from_env(name: str, default: int) -> int:
    """
    Read an integer setting from the environment.

    Falls back to ``default`` (with a warning) when the variable is set to
    something that is not an integer.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"[config] Invalid {name}={raw!r}, using default: {default}")
        return default
