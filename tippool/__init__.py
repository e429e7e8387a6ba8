"""Tip Pool - pooled gratuity tracking and payout settlement."""

__version__ = "0.1.0"
