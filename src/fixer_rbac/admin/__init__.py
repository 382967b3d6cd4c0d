"""Admin endpoints for approvals and role/permission management."""
