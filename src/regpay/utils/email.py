"""Email normalization."""


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address for lookups and storage."""
    return email.strip().lower()
