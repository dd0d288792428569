"""Infrastructure layer: HTTP, providers, storage, observability and wiring."""
