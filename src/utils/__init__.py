"""Utility helpers for the HL7 message toolkit."""
