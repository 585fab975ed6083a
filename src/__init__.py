"""HL7 message toolkit."""
