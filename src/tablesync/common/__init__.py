"""Helpers shared across tablesync layers."""
