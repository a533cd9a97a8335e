"""Test helpers for adosync tests."""
