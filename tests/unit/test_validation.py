"""Unit tests for intake document validation."""

from clearance.engines.validation.documents import DocumentValidator, ValidationStatus
from clearance.kernel.documents import REQUIRED_DOCUMENTS, DocumentKey, InMemoryDocument, file_extension

TEN_MB = 10 * 1024 * 1024


class TestDocumentValidator:
    """Tests for DocumentValidator."""

    def test_all_valid(self, documents):
        validator = DocumentValidator(max_bytes=TEN_MB)
        results = validator.validate(documents)

        assert len(results) == len(REQUIRED_DOCUMENTS)
        assert all(r.status == ValidationStatus.VALID for r in results)
        assert validator.errors(documents) == {}

    def test_missing_document(self, documents):
        del documents[DocumentKey.LONG_ABSTRACT]
        documents[DocumentKey.JOURNAL_FORMAT] = None

        errors = DocumentValidator(max_bytes=TEN_MB).errors(documents)

        assert errors == {
            "long_abstract": "This document is required",
            "journal_format": "This document is required",
        }

    def test_wrong_extension(self, documents):
        documents[DocumentKey.APPROVAL_SHEET] = InMemoryDocument("approval.docx", b"x")
        documents[DocumentKey.FULL_PAPER] = InMemoryDocument("paper.pdf", b"x")

        errors = DocumentValidator(max_bytes=TEN_MB).errors(documents)

        assert errors["approval_sheet"] == "File must be .pdf format"
        assert errors["full_paper"] == "File must be .docx format"

    def test_no_extension_is_rejected(self, documents):
        documents[DocumentKey.APPROVAL_SHEET] = InMemoryDocument("approval", b"x")
        assert "approval_sheet" in DocumentValidator(max_bytes=TEN_MB).errors(documents)

    def test_extension_case_insensitive(self, documents):
        documents[DocumentKey.APPROVAL_SHEET] = InMemoryDocument("APPROVAL.PDF", b"x")
        assert DocumentValidator(max_bytes=TEN_MB).errors(documents) == {}

    def test_too_large(self, documents):
        documents[DocumentKey.FULL_PAPER] = InMemoryDocument("paper.docx", b"x" * (TEN_MB + 1))

        errors = DocumentValidator(max_bytes=TEN_MB).errors(documents)

        assert errors == {"full_paper": "File size must not exceed 10MB"}

    def test_exactly_at_limit_passes(self, documents):
        documents[DocumentKey.FULL_PAPER] = InMemoryDocument("paper.docx", b"x" * TEN_MB)
        assert DocumentValidator(max_bytes=TEN_MB).errors(documents) == {}


class TestDocumentKey:
    def test_parse_aliases(self):
        assert DocumentKey.parse("approvalSheet") is DocumentKey.APPROVAL_SHEET
        assert DocumentKey.parse("journal_format") is DocumentKey.JOURNAL_FORMAT

    def test_file_extension(self):
        assert file_extension("a.b.PDF") == "pdf"
        assert file_extension("noext") == ""
        assert file_extension(None) == ""
