"""
Test Tools Package
Tests for the tools module (notification service, email and push transports)
"""
