"""
Typed exception hierarchy for Stockbook.

Every error raised by the kernel, the engines, and the document modules is a
``StockbookError`` subclass carrying a machine-readable ``code`` class
attribute plus structured attributes, so callers (an HTTP layer, a CLI, a
test) branch on the type and read fields instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockbookError (base)
    |
    +-- ValidationError
    |   +-- InsufficientStockError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- PartNotFoundError
    |   +-- DocumentNotFoundError
    |   +-- EntryNotFoundError
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- AlreadyPostedError
    |   +-- EntryNotPostedError
    |
    +-- ReferentialIntegrityError
    |   +-- AccountReferencedError
    |   +-- PartReferencedError
    |
    +-- InvalidTransitionError
    |   +-- AlreadyReceivedError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES
===============================================================================

Category        | Code                   | When Raised
----------------|------------------------|---------------------------------------
Validation      | VALIDATION_ERROR       | Negative qty/price, missing field
                | INSUFFICIENT_STOCK     | Sale or issue exceeds stock on hand
----------------|------------------------|---------------------------------------
Not found       | NOT_FOUND              | Generic missing reference
                | ACCOUNT_NOT_FOUND      | Account id/code does not exist
                | PART_NOT_FOUND         | Part id/partNo does not exist
                | DOCUMENT_NOT_FOUND     | PO/DPO/invoice/adjustment missing
                | ENTRY_NOT_FOUND        | Ledger entry missing
----------------|------------------------|---------------------------------------
Posting         | UNBALANCED_ENTRY       | Sum of debits != sum of credits
                | ALREADY_POSTED         | Posting an entry that is posted
                | ENTRY_NOT_POSTED       | Reversing a draft entry
----------------|------------------------|---------------------------------------
Integrity       | ACCOUNT_REFERENCED     | Deleting an account with lines
                | PART_REFERENCED        | Deleting a part with documents
----------------|------------------------|---------------------------------------
Lifecycle       | INVALID_TRANSITION     | Status change not allowed
                | ALREADY_RECEIVED       | Receiving a received document
----------------|------------------------|---------------------------------------
Configuration   | CONFIGURATION_ERROR    | Invalid YAML or setting value

Document services roll the transaction back before any of these escape, so
a failure never leaves a partial write behind.
"""

from decimal import Decimal


class StockbookError(Exception):
    """Base exception for all Stockbook errors.

    Subclasses define a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "STOCKBOOK_ERROR"


# Validation


class ValidationError(StockbookError):
    """Bad input: negative quantity or price, missing required field."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the stock on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, part_id: str, requested: int, available: int):
        self.part_id = part_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for part {part_id}: "
            f"requested {requested}, available {available}",
            field="quantity",
        )


# Missing references


class NotFoundError(StockbookError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, key: str):
        super().__init__("Account", key)


class PartNotFoundError(NotFoundError):
    code: str = "PART_NOT_FOUND"

    def __init__(self, key: str):
        super().__init__("Part", key)


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_type: str, key: str):
        self.document_type = document_type
        super().__init__(document_type, key)


class EntryNotFoundError(NotFoundError):
    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, key: str):
        super().__init__("Ledger entry", key)


# Posting


class PostingError(StockbookError):
    """Base exception for ledger posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Debits do not equal credits. No tolerance is applied."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Entry is unbalanced: debits={debits}, credits={credits}"
        )


class AlreadyPostedError(PostingError):
    code: str = "ALREADY_POSTED"

    def __init__(self, entry_id: str, number: str):
        self.entry_id = entry_id
        self.number = number
        super().__init__(f"Entry {number} ({entry_id}) is already posted")


class EntryNotPostedError(PostingError):
    code: str = "ENTRY_NOT_POSTED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.status = status
        super().__init__(
            f"Entry {entry_id} cannot be reversed: status is {status}"
        )


# Referential integrity


class ReferentialIntegrityError(StockbookError):
    """Deleting a record that transactions still reference."""

    code: str = "REFERENTIAL_INTEGRITY"


class AccountReferencedError(ReferentialIntegrityError):
    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_code: str, line_count: int):
        self.account_code = account_code
        self.line_count = line_count
        super().__init__(
            f"Account {account_code} is referenced by {line_count} ledger line(s)"
        )


class PartReferencedError(ReferentialIntegrityError):
    code: str = "PART_REFERENCED"

    def __init__(self, part_id: str, references: dict[str, int]):
        self.part_id = part_id
        self.references = references
        summary = ", ".join(f"{k}={v}" for k, v in sorted(references.items()))
        super().__init__(f"Part {part_id} is still referenced: {summary}")


# Document lifecycle


class InvalidTransitionError(StockbookError):
    """The document is not in a state that allows the requested action."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        document_type: str,
        document_id: str,
        current_status: str,
        action: str,
    ):
        self.document_type = document_type
        self.document_id = document_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {document_type} {document_id} "
            f"in status '{current_status}'"
        )


class AlreadyReceivedError(InvalidTransitionError):
    code: str = "ALREADY_RECEIVED"

    def __init__(self, document_type: str, document_id: str, current_status: str):
        super().__init__(document_type, document_id, current_status, "receive")


# Configuration


class ConfigurationError(StockbookError):
    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, setting: str | None = None):
        self.setting = setting
        super().__init__(message)
