"""
Tests for authentication app.

This package contains test modules for:
- test_models.py: UserManager, User and Profile tests
- factories.py: UserFactory / SellerFactory shared with messaging tests

Usage:
    pytest authentication/tests/
    pytest authentication/tests/test_models.py
"""
