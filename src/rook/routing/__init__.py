"""Routing: declarations compiled into an immutable dispatch table.

Declarations are normalized, ordered, and compiled once at startup into
a ``Dispatcher`` with O(path-depth) matching.
"""
