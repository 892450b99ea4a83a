class CodeGraphError(Exception):
    """Base error for the code graph engine."""


class LanguageNotSupportedError(CodeGraphError):
    """Raised when no grammar is configured for a language."""

    def __init__(self, language: str):
        super().__init__(f"No grammar configured for language: {language}")
        self.language = language
