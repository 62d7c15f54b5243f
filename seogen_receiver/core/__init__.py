"""
SEOgen Receiver - Core primitives.

Signature verification, import locks, receiver options, structured logging,
error envelopes and request middleware.
"""
