"""Tests for events app."""
