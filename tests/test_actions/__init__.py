"""
Test Actions Package
Tests for the reminder engine, dedup ledger, scheduler and insights
"""
