"""Courseware: courses, enrollment policies, whitelists and content units."""
