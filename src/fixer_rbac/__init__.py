"""Fixer marketplace RBAC core: permission resolution, approvals, and the authorization gate."""
