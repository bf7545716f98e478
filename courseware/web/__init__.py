"""FastAPI adapter for the courseware services."""
