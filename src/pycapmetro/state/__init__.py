"""Process-lifetime collector state.

Deduplication history and empty-response counters live here. Each route
owns its own :class:`~pycapmetro.state.routes.RouteState`, so the
concurrent per-route poll tasks never write to a shared entry.
"""
