"""Core constants shared across components."""
