"""
StrataDB Test Suite.

This package contains:
- unit/: Unit tests for each module in isolation
- integration/: Connection-level tests, including concurrent writers
"""
