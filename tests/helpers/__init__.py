"""Test helpers for Untreated Reminder integration tests.

See setup.py for Gmail mocks, integration setup and surface helpers.
"""
