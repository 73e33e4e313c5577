"""HTTP layer for the ERM service."""
