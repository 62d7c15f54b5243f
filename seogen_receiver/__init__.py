"""
SEOgen Receiver - Callback Ingestion Service

FastAPI service that receives generated landing pages from the SEOgen
generation API, authenticates each callback with an HMAC signature and
imports every canonical page exactly once.
"""

__version__ = "0.1.0"
