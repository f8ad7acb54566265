def redact_identifier(identifier: str | None) -> str:
    """
    Redact a user or anonymous identifier for logging purposes.
    Shows the first 8 characters followed by ***.
    """
    if not identifier:
        return "None"
    if len(identifier) <= 8:
        return identifier
    return f"{identifier[:8]}***"
