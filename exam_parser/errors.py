"""Exception hierarchy for exam parsing.

Input errors (unsupported type, empty document, too short) and AI
structured extraction failures propagate to callers. Errors from AI
categorization never do; they degrade to heuristics inside the categorizer.
"""


class ExamParserError(Exception):
    """Base class for all errors raised by the exam parser."""


class TextAcquisitionError(ExamParserError):
    """Raised when a file cannot be turned into plain text."""


class UnsupportedFileTypeError(TextAcquisitionError):
    """Raised for file extensions other than .pdf, .docx, .doc and .txt."""

    def __init__(self, extension: str):
        super().__init__(f"Unsupported file type: {extension or '(none)'}")
        self.extension = extension


class EmptyDocumentError(TextAcquisitionError):
    """Raised when a decoder returns empty or whitespace-only text."""


class DocumentDecodeError(TextAcquisitionError):
    """Raised when a PDF or Word decoder fails.

    Attributes:
        original_exception: The decoder exception that was wrapped
    """

    def __init__(self, message: str, original_exception: Exception):
        super().__init__(message)
        self.original_exception = original_exception


class DocumentTooShortError(ExamParserError):
    """Raised when the text is too short to be a plausible exam."""

    def __init__(self, length: int, minimum: int):
        super().__init__(
            "The uploaded file does not contain enough text to be a valid exam file "
            f"({length} characters, minimum {minimum}). Please check the file and try again."
        )
        self.length = length
        self.minimum = minimum


class AIExtractionError(ExamParserError):
    """Raised when AI structured extraction fails after all attempts.

    Attributes:
        attempts: Number of attempts made
        last_exception: The error raised by the final attempt
    """

    def __init__(self, message: str, attempts: int = 0, last_exception: Exception | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception
