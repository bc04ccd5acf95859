"""Logging setup for the application."""
