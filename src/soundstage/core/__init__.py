"""Scanning pipeline: parsing, walking, probing and the scan engine."""
