"""Domain layer - request/response models and enumerations.

Wire and storage field names are camelCase to match the web client.
"""
