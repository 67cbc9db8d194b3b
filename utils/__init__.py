"""Shared utilities for the fusion service."""
