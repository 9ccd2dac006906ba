"""Applying approved preprocessing rules to data."""
