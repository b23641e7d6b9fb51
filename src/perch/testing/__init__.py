"""Test utilities for perch applications.

Provides an in-process test client that drives the ASGI app directly::

    from perch.testing import TestClient
"""

from perch.testing.client import TestClient

__all__ = [
    "TestClient",
]
