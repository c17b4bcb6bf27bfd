"""HTTP surface for checkout and payment webhooks."""
