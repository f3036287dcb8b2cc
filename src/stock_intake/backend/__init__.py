"""Contracts for the backend collaborators and a file-backed snapshot implementation."""
