"""Shared type aliases used across perch modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler — user-defined function returning a Response, str, bytes or (body, status)
Handler: TypeAlias = Callable[..., Any]

# Startup / shutdown hook — sync or async, no arguments
Hook: TypeAlias = Callable[[], Any]
