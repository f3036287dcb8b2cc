"""Spreadsheet upload pipeline for warehouse import requests and import orders."""

__version__ = "0.1.0"
