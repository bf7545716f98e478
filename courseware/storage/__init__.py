"""Binary storage for unit files."""
