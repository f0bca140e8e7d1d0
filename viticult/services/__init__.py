"""Application services implementing the business operations."""
