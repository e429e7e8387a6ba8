"""Tip Pool command-line interface."""
