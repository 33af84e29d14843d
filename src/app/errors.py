"""Application-level exceptions"""

from libs.result import Error


class IntegrityViolation(Exception):
    """
    Fatal inconsistency for one event (amount mismatch, missing referenced record)

    Never retried; surfaced for manual investigation.
    """

    def __init__(self, error: Error):
        super().__init__(error.message)
        self.error = error
