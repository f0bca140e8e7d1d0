"""Core cross-cutting concerns: configuration, logging, errors and security."""
