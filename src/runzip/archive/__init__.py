"""Zip container structure: parsing and regeneration."""
