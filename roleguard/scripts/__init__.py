"""
Scripts Module

Management CLI tools for role administration:
- Seeding the system role hierarchy
- Granting the platform admin role to a user
"""
