"""Core engine: record model, validation, reconciliation, scoring, backup."""
