"""
Keyfile Error Kinds
===================

Exceptions raised while reading LS-Dyna style keyfiles and while extracting
part meshes from the combined database. Every error is fatal for the whole
run; the command line tool maps each kind to its own exit status.
"""

from typing import Optional


class KeyfileError(Exception):
    """Base exception for keyfile conversion errors"""

    def __init__(self, message: str, line_num: Optional[int] = None,
                 source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.line_num = line_num
        self.source = source

    def __str__(self) -> str:
        prefix = ""
        if self.source:
            prefix += f"{self.source}: "
        if self.line_num is not None:
            prefix += f"Line {self.line_num}: "
        return prefix + self.message


class InvalidInputPathError(KeyfileError):
    """Input path is missing, not a regular file, or not accessible"""
    pass


class UnreadableFileError(KeyfileError):
    """Input file exists but could not be opened or read"""
    pass


class MalformedCardError(KeyfileError):
    """Field/separator sequence of a card does not match its grammar"""
    pass


class DuplicateElementIdError(KeyfileError):
    """Two ELEMENT cards share the same element id"""

    def __init__(self, element_id: int, line_num: Optional[int] = None,
                 source: Optional[str] = None):
        super().__init__("found two elements with the same element id "
                         f"({element_id})", line_num, source)
        self.element_id = element_id


class InconsistentDatabaseError(KeyfileError):
    """A node reference has no matching entry (internal error)"""
    pass


class KeyfileWarning(UserWarning):
    """Warning for tolerated, non-fatal input oddities"""
    pass
