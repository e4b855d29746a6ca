"""Service layer for Sales Intelligence."""
