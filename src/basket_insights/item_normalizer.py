"""Shared catalog identity normalization utilities."""

_IDENTITY_SEPARATOR = "\x1f"


def normalize_identity_part(value: str) -> str:
    """Normalize one attribute for case-insensitive whole-string comparison."""
    return value.strip().casefold()


def catalog_identity_key(name: str, brand: str, unit_of_measure: str) -> str:
    """Build the secondary identity key (name + brand + unit of measure)."""
    return _IDENTITY_SEPARATOR.join(
        normalize_identity_part(part) for part in (name, brand, unit_of_measure)
    )


def normalize_scan_code(scan_code: str) -> str:
    """Scan codes match exactly, ignoring surrounding whitespace."""
    return scan_code.strip()
