"""Validation of script names before they are pushed or created."""

import re

from .exceptions import NameValidationError
from .metadata import DECLARATIONS

_SCRIPT_NAME_PATTERN = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def is_script_name_valid(name: str, text: str) -> bool:
    """Check that a script declares a function named like its file.

    ``(declarations)`` holds global declarations and is always accepted.

    Examples:
        >>> is_script_name_valid("CalcTotal", "function CalcTotal(a) {}")
        True
        >>> is_script_name_valid("CalcTotal", "function calcTotal(a) {}")
        False
        >>> is_script_name_valid("(declarations)", "var x;")
        True
    """
    if name == DECLARATIONS:
        return True
    return re.search(rf"function\s+{re.escape(name)}\s*\(", text) is not None


def validate_scripts(scripts: dict[str, str]) -> None:
    """Validate a batch of scripts, all or nothing.

    Args:
        scripts: Mapping of script name to its text

    Raises:
        NameValidationError: Listing every empty or misnamed script
    """
    invalid = [
        name
        for name, text in scripts.items()
        if not (text and is_script_name_valid(name, text))
    ]
    if invalid:
        raise NameValidationError(invalid)


def is_new_script_name_valid(name: str) -> bool:
    """Check that a name can be used for a new script file.

    Examples:
        >>> is_new_script_name_valid("Helper_1")
        True
        >>> is_new_script_name_valid("1Helper")
        False
    """
    return name == DECLARATIONS or _SCRIPT_NAME_PATTERN.match(name) is not None
