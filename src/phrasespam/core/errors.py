"""Custom exception types for phrasespam.

Error messages follow one convention:
- What failed (specific operation or component)
- Why it failed (the specific condition)
- How to fix it (actionable guidance)
"""


class PhraseSpamError(Exception):
    """Base exception for all phrasespam errors."""

    pass


class ConfigValidationError(PhraseSpamError):
    """Raised when config.yaml fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    pass


class ConfigLoadError(PhraseSpamError):
    """Raised when config.yaml cannot be loaded (file not found, YAML parse error)."""

    pass


class DatabaseError(PhraseSpamError):
    """Raised when SQLite operations fail."""

    pass


class StoreBusyError(DatabaseError):
    """Raised when the database is locked by another writer.

    Transient: RetryPolicy retries operations failing with this error and
    never lets it reach callers of the classifier.
    """

    pass


class StorageUnavailableError(DatabaseError):
    """Raised when the database stayed busy through every retry attempt.

    Attributes:
        attempts: Number of attempts made before giving up
    """

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class InsufficientDataError(PhraseSpamError):
    """Raised when scoring is requested before both classes have been learned.

    Attributes:
        spam_messages: Spam messages learned so far
        good_messages: Good messages learned so far
    """

    def __init__(self, message: str, spam_messages: int = 0, good_messages: int = 0):
        super().__init__(message)
        self.spam_messages = spam_messages
        self.good_messages = good_messages


class MalformedInputError(PhraseSpamError):
    """Raised when stored or submitted data is structurally unusable.

    Covers a database without its totals record (an initialization bug) and
    messages whose phrase splitting exceeded the regex timeout.
    """

    pass
