"""
Test Tools Package
Tests for the tools module (clock, record stores, notification sink)
"""
