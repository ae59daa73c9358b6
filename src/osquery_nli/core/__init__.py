"""Core infrastructure: configuration, logging, errors and shared models."""
