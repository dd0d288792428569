"""Application layer: caches, cover services and background workers."""
