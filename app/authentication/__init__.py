"""
Authentication application.

Accounts (User) and their public display data (Profile). Requests are
authenticated with JWTs issued by rest_framework_simplejwt.

Usage:
    from authentication.models import User, Profile
"""
