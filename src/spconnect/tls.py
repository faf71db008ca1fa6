"""Process-wide switch that turns off TLS certificate validation.

Once enabled it stays on until the process exits; there is no way back.
What it covers:

* the standard library's default ``ssl`` context (``urllib``, ``http.client``);
* SharePoint calls and ACS token calls made by the default exchanges, which
  read :func:`verify_ssl` when a connection is created;
* azure-identity credentials built by the default exchanges
  (``connection_verify``).

Plain ``requests`` calls made elsewhere, and MSAL's own HTTP client, keep
validating certificates. Only use it against servers with self-signed or
privately issued certificates.
"""

from __future__ import annotations

import logging
import ssl
import threading

import urllib3

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_enabled = False


def enable_ssl_bypass() -> None:
    """Disable certificate validation for the rest of the process."""
    global _enabled
    with _lock:
        if _enabled:
            return
        ssl._create_default_https_context = ssl._create_unverified_context
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        _enabled = True
    logger.warning(
        "TLS certificate validation is disabled for the lifetime of this process"
    )


def ssl_bypass_enabled() -> bool:
    return _enabled


def verify_ssl() -> bool:
    """Value for the ``verify`` argument of outgoing requests."""
    return not _enabled
