"""Email address validation."""

import logging
import re

import dns.exception
import dns.resolver

logger = logging.getLogger(__name__)

# W3C HTML5 valid-email pattern
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

MX_LOOKUP_TIMEOUT_SECONDS = 5.0


def has_mx_record(domain: str) -> bool:
    """Check that the domain publishes at least one MX record."""
    try:
        answer = dns.resolver.resolve(domain, "MX", lifetime=MX_LOOKUP_TIMEOUT_SECONDS)
    except dns.exception.DNSException as e:
        logger.info(f"MX lookup failed for '{domain}': {e}")
        return False
    return len(answer) > 0


def is_email_valid(email: str) -> bool:
    """Check the address structure and length, and that its domain accepts mail."""
    if len(email) < 3 or len(email) > 254:
        return False

    if not EMAIL_PATTERN.fullmatch(email):
        return False

    domain = email.split("@", 1)[1]
    return has_mx_record(domain)
