from typing import Tuple
from urllib.parse import urlparse

MAX_URL_LENGTH = 2048


def validate_url(url: str) -> Tuple[bool, str, str]:
    """
    Check that a submitted URL is an absolute http(s) URL the audit engine can load.

    Returns:
        (is_valid, stripped_url, error_message)
    """
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    url = url.strip()

    if len(url) > MAX_URL_LENGTH:
        return False, url, f"URL is longer than {MAX_URL_LENGTH} characters"

    try:
        parsed = urlparse(url)
    except ValueError as e:
        return False, url, f"URL parsing error: {str(e)}"

    if parsed.scheme not in ['http', 'https']:
        return False, url, "Please enter a valid http or https URL."

    if not parsed.netloc:
        return False, url, "Invalid URL format: missing domain"

    return True, url, ""
