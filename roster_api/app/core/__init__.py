"""Configuration, logging, storage, security, errors and the event bus."""
