"""Branch name rules for deriving the notes namespace"""

import string

MAX_SANITIZED_BYTES = 200

_PASSTHROUGH = frozenset(string.ascii_letters + string.digits + "_.")
_SEPARATORS = frozenset("/-\\ ")


class InvalidBranchNameError(ValueError):
    """Branch name cannot be turned into a notes namespace component."""

    pass


def sanitize_branch_name(branch: str) -> str:
    """Derive a ref-safe namespace component from a branch name

    ASCII letters, digits, "_" and "." pass through; "/", "-", "\\" and space
    become "-"; anything else becomes "_". Runs of "-" are collapsed and
    leading/trailing "-" stripped.

    Args:
        branch: Branch name as reported by git

    Returns:
        Sanitized namespace component

    Raises:
        InvalidBranchNameError: If the name is empty, starts or ends with
            "-" or ".", contains "..", or sanitizes to nothing / too long
    """
    if not branch:
        raise InvalidBranchNameError("Branch name cannot be empty")
    if branch[0] in "-." or branch[-1] in "-.":
        raise InvalidBranchNameError(f"Branch name cannot start or end with '-' or '.': {branch!r}")
    if ".." in branch:
        raise InvalidBranchNameError(f"Branch name cannot contain '..': {branch!r}")

    mapped = []
    for char in branch:
        if char in _PASSTHROUGH:
            mapped.append(char)
        elif char in _SEPARATORS:
            # Collapse runs of '-'
            if not mapped or mapped[-1] != "-":
                mapped.append("-")
        else:
            mapped.append("_")

    sanitized = "".join(mapped).strip("-")

    if not sanitized:
        raise InvalidBranchNameError(f"Branch name is empty after sanitization: {branch!r}")
    if len(sanitized.encode("utf-8")) > MAX_SANITIZED_BYTES:
        raise InvalidBranchNameError(
            f"Sanitized branch name exceeds {MAX_SANITIZED_BYTES} bytes: {branch!r}"
        )
    if sanitized[0] == "." or sanitized[-1] == "." or sanitized.endswith(".lock"):
        raise InvalidBranchNameError(f"Sanitized branch name is not a valid ref component: {sanitized!r}")

    return sanitized


def notes_ref(prefix: str, branch: str) -> str:
    """Full notes ref holding the comments of a branch, e.g. refs/notes/git-review/main"""
    return f"{prefix.rstrip('/')}/{sanitize_branch_name(branch)}"
