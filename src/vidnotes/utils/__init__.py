"""Utility helpers shared across Vidnotes modules."""
