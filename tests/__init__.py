"""
Test suite for the Catalog Command Service.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_command_pipeline.py -v
"""
