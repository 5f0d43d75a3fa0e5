"""Core session validation and fund recovery logic."""
