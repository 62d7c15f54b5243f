"""SEOgen Receiver - API routers."""
