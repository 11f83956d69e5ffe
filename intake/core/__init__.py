"""Core infrastructure: configuration, logging, Redis and error tracking."""
