"""Listing, statistics and export services."""
