"""Content units and the files they own."""
