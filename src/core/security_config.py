"""Log redaction and error-response exposure rules.

Centralizes which structured log keys get masked and which error fields a
client may see in each environment, so the error handler and the structured
logger cannot drift apart.
"""

# Keys whose values never reach the logs. Matching is by substring on the
# lowercased key, so "x-api-key" and "serpapi_key" are both covered by "key".
SENSITIVE_KEYS: set[str] = {
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "key",
    "bearer",
    "cookie",
    "set-cookie",
    "x-api-key",
    # Raw upstream payloads can be large and user-derived
    "transcript",
    "prompt",
}

# Production error envelopes only ever carry these fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment."""
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
