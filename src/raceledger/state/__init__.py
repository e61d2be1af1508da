"""State layer.

The cache here is the single source of truth that every read is served from;
the bus broadcasts its mutations.
"""
