"""Test suite for the struct packer.

Test Structure:
- domain/: Tests for the layout models, catalog, layout engine, optimizer and reports
- application/: Tests for batch processing and the JSON/DWARF loaders
- infrastructure/: Tests for logging, engine configuration and ELF detection
- config/: Tests for run configuration
- test_main.py: Command line runs

Run tests with pytest:
    pytest                    # Run all tests
    pytest -m unit            # Run unit tests only
    pytest -m "not slow"      # Skip slow tests
"""
