"""Entities and module configurations shared by the test suite."""
