"""Infrastructure adapters for MongoDB, Redis and SMTP."""
