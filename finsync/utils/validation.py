"""
Input validation utilities for sync requests.

Provides reusable validation functions for tenant identifiers, date
ranges, limits and SQL identifiers used to build dynamic upsert
statements.
"""

import re
from datetime import date


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


def validate_tenant_id(tenant_id: str | None, field_name: str = "tenant_id") -> str:
    """
    Validate a tenant identifier.

    Tenant IDs must be non-empty strings containing only alphanumeric
    characters, hyphens, underscores and dots (UUIDs qualify).

    Args:
        tenant_id: The tenant ID to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated tenant ID (stripped of whitespace)

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> validate_tenant_id("acme-corp")
        'acme-corp'
        >>> validate_tenant_id("4f9c2a9e-7d4b-4c44-9a55-0d0f4d1d2f11")
        '4f9c2a9e-7d4b-4c44-9a55-0d0f4d1d2f11'
    """
    if not tenant_id or not isinstance(tenant_id, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    tenant_id = tenant_id.strip()

    if not tenant_id:
        raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    if not re.match(r'^[a-zA-Z0-9_\-\.]+$', tenant_id):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "Only alphanumeric, hyphens, underscores, and dots are allowed."
        )

    if len(tenant_id) > 255:
        raise ValidationError(f"{field_name} exceeds maximum length of 255 characters")

    return tenant_id


def validate_date(value: str, field_name: str = "date") -> date:
    """
    Parse an ISO calendar date (YYYY-MM-DD).

    Args:
        value: Date string
        field_name: Name of the field (for error messages)

    Returns:
        The parsed date

    Raises:
        ValidationError: If the value is not a valid YYYY-MM-DD date
    """
    if not isinstance(value, str) or not re.match(r'^\d{4}-\d{2}-\d{2}$', value.strip()):
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format, got {value!r}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValidationError(f"{field_name} is not a valid calendar date: {value!r}") from e


def validate_date_range(date_from: str, date_to: str) -> tuple[date, date]:
    """
    Validate an inclusive date range.

    Raises:
        ValidationError: If either bound is invalid or date_from > date_to
    """
    start = validate_date(date_from, "date_from")
    end = validate_date(date_to, "date_to")
    if start > end:
        raise ValidationError(f"date_from ({date_from}) must not be after date_to ({date_to})")
    return start, end


def validate_limit(limit: int, field_name: str = "limit", max_limit: int | None = None) -> int:
    """
    Validate a positive record limit.

    Examples:
        >>> validate_limit(100)
        100
        >>> validate_limit(0)  # doctest: +SKIP
        ValidationError: limit must be a positive integer
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"{field_name} must be an integer, got {type(limit).__name__}")

    if limit <= 0:
        raise ValidationError(f"{field_name} must be a positive integer, got {limit}")

    if max_limit is not None and limit > max_limit:
        raise ValidationError(f"{field_name} exceeds maximum of {max_limit}")

    return limit


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (table name, column name, etc.).

    Only allows safe identifiers; used for the dynamic table and column
    names of upsert statements.

    Examples:
        >>> sanitize_sql_identifier("erp_invoices")
        'erp_invoices'
        >>> sanitize_sql_identifier("table; DROP TABLE users;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    if len(identifier) > 63:  # PostgreSQL limit
        raise ValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    reserved_keywords = {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "database", "index", "view", "user", "grant", "revoke"
    }
    if identifier.lower() in reserved_keywords:
        raise ValidationError(
            f"{field_name} '{identifier}' is a reserved SQL keyword. "
            "Please use a different name."
        )

    return identifier
