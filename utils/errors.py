"""Exception types raised by the vbht tools."""


class VbhtError(Exception):
    """Base class for refusals and failures reported to the user."""

    exit_code = 1


class AncestryError(VbhtError):
    """The invoking process chain could not be read or authenticated."""


class PrivilegeError(VbhtError):
    """The user/privilege combination is not allowed."""


class DisplayError(VbhtError):
    """No usable X display slot is available."""

    exit_code = 3
