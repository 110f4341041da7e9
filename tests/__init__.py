"""
WorkGuard Test Suite

Test Structure:
- tests/compliance/ - Risk engine: patterns, scoring, autonomy, blocks, allocation guard
- tests/workforce/ - Registration and operation lifecycle
- tests/integration/ - HTTP API against an in-memory database

Run all tests: pytest
Run specific module: pytest tests/compliance/test_guard.py
"""
