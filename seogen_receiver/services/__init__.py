"""SEOgen Receiver - Import, reconciliation and pull services."""
