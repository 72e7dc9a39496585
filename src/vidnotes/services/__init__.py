"""Service layer for the Vidnotes import pipeline."""
