from urllib.parse import urlparse
from typing import Tuple


ALLOWED_SCHEMES = ("http", "https")


def validate_url(url: str) -> Tuple[bool, str, str]:
    """
    Check that `url` is a well-formed absolute http(s) URL.

    Returns (is_valid, cleaned_url, error_message). Scheme-less input such as
    "example.com" is rejected rather than guessed at.
    """
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    cleaned = url.strip()

    if any(ch.isspace() for ch in cleaned):
        return False, cleaned, "Invalid URL format: contains whitespace"

    try:
        parsed = urlparse(cleaned)

        if not parsed.scheme:
            return False, cleaned, "Invalid URL format: missing scheme"

        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            return False, cleaned, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

        if not parsed.netloc or not parsed.hostname:
            return False, cleaned, "Invalid URL format: missing domain"

        # raises ValueError for out-of-range or non-numeric ports
        _ = parsed.port

        return True, cleaned, ""

    except ValueError as e:
        return False, cleaned, f"URL parsing error: {str(e)}"
