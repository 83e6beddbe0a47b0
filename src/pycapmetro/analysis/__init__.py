"""Datasets derived from recorded positions."""
