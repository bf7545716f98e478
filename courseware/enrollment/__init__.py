"""Courses, whitelists and the enrollment policy."""
