"""HTTP API and external service adapters."""
