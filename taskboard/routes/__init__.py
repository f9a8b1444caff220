"""
Routes package for the taskboard service.

This package contains route blueprints:
- api: health check and task CRUD endpoints
- auth: registration, login and token refresh
- users: profile and user administration endpoints
"""
