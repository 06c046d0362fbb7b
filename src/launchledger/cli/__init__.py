"""Command-line interface for LaunchLedger."""
