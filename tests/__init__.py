"""Test suite for the taskboard service."""
