"""Core configuration, database access, errors and audit logging."""
