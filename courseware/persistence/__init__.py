"""Repositories for courses, users, lectures and content units."""
