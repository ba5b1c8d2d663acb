"""Utility helpers shared across Clinic Records."""
