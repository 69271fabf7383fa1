"""
Test suite for Sand Dispatch.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_assignment_service.py -v
"""
