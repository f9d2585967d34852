"""Test utilities for perch applications.

::

    from perch.testing import TestClient, assert_replied
"""

from perch.testing.assertions import assert_rate_limited, assert_replied, assert_silent
from perch.testing.client import TestClient

__all__ = [
    "TestClient",
    "assert_rate_limited",
    "assert_replied",
    "assert_silent",
]
