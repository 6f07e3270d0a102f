"""Infrastructure: stubs, adapters, logging and metrics."""
