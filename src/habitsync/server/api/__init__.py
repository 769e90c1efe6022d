"""API routes for the habitsync server."""
