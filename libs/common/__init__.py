"""Common utilities shared across libs."""
