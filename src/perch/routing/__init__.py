"""Routing — the fallback end of the chain.

Routes are registered during setup and compiled into an immutable
lookup table when the app freezes. Requests the static layer declines
end up here.
"""
