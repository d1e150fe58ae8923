"""
Test Services Package
Tests for the document store and services
"""
