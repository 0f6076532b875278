"""
Work Sergeant Test Suite

This package contains all tests for the Work Sergeant application:
- unit/: Unit tests for individual components
- integration/: End-to-end flows through the CLI, the bridge and the JSON store

Run tests with:
    pytest                          # All tests
    pytest tests/unit/              # Unit tests only
    pytest -m integration           # Integration tests only
"""
