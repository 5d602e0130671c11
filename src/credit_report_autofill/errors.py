"""Exception types raised by the credit report autofill pipeline."""


class CreditReportError(Exception):
    """Base class for every error raised by this package"""


class InputFormatError(CreditReportError):
    """Uploaded file bytes could not be read"""


class SpreadsheetFormatError(InputFormatError):
    pass


class TemplateFormatError(InputFormatError):
    pass


class DocumentGenerationError(CreditReportError):
    """Report generation failed; no partial document is produced"""


class DocumentStructureError(DocumentGenerationError):
    pass


class TemplateRenderError(DocumentGenerationError):
    pass


class CollaboratorError(CreditReportError):
    """An external OCR or language-generation request failed"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(CreditReportError):
    pass
