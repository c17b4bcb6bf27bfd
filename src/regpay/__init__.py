"""Registration and payment reconciliation core."""
