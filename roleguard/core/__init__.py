"""
Core Module

Shared application components including:
- Configuration management
- Logging configuration
- Role hierarchy cache and role name validation
- CSRF token handling and failure rate limiting
- Dependency injection for FastAPI
"""
