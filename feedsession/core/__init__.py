"""Configuration, logging, errors and durable client storage."""
