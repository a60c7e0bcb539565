"""
Tests package for the Sharelink backend.

This package contains test suites organized by type:
- unit/: Fast tests against in-memory fakes
- contracts/: Contract tests for document store implementations
- integration/: Integration tests with real services
- property/: Property-based tests using Hypothesis
"""
