"""
Tests for the Artist Timeline pipeline.

This package contains tests for:
- Field probing and event classification
- Paginated retrieval and retry
- Identity resolution
- Milestone derivation and the sliding peak window
- Timeline assembly and the service/CLI surface
"""
