"""Workbook decoding, field extraction and template generation."""
