"""Property-based tests using Hypothesis.

These tests use generative testing to explore edge cases:
- Arbitrary interleavings of insert and delete events against the store
- URL validation with arbitrary inputs

To run property tests:
    pytest tests/property/ -v --hypothesis-show-statistics
"""
