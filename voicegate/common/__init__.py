"""Shared infrastructure for voicegate services."""
