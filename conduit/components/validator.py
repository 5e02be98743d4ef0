"""Package name validation — the injection defence every other step relies on."""

from __future__ import annotations

import re

from conduit.exceptions import InvalidPackageName

# vendor/package: lowercase alphanumeric segments, single '.', '_' or '-'
# separators, never doubled, never leading or trailing.
PACKAGE_NAME_RE = re.compile(
    r"[a-z0-9](?:[_.-]?[a-z0-9]+)*/[a-z0-9](?:[_.-]?[a-z0-9]+)*"
)

MAX_PACKAGE_NAME_LENGTH = 100


def validate_package_name(name: str) -> str:
    """Return *name* unchanged if it is a well-formed ``vendor/package`` identifier.

    Must run before any user- or registry-supplied string is placed in a
    subprocess argv or joined into a filesystem path. Shell metacharacters
    fall outside the grammar and are rejected implicitly.

    Raises:
        InvalidPackageName: Grammar mismatch, empty or non-string input, or
            longer than 100 characters.
    """
    if not isinstance(name, str):
        raise InvalidPackageName(f"expected a string, got {type(name).__name__}", repr(name))
    if not name:
        raise InvalidPackageName("name is empty", name)
    if len(name) > MAX_PACKAGE_NAME_LENGTH:
        raise InvalidPackageName(
            f"name is {len(name)} characters, the limit is {MAX_PACKAGE_NAME_LENGTH}", name
        )
    if not PACKAGE_NAME_RE.fullmatch(name):
        raise InvalidPackageName("does not match vendor/package", name)
    return name


def is_valid_package_name(name: str) -> bool:
    try:
        validate_package_name(name)
    except InvalidPackageName:
        return False
    return True
