"""Command-line client for the AirWatch API."""
