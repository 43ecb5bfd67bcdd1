"""Fingerprint naming profiles and local stand-ins for the comparison service."""
