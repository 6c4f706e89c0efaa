"""
Exceptions métier du service.

Les services lèvent ces erreurs ; l'app FastAPI les traduit en réponses
HTTP `{message}` (voir stockroom.app.main).
"""

from __future__ import annotations


class StockroomError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------- INGESTION ----------
class IngestError(StockroomError):
    pass


class UnreadableWorkbook(IngestError):
    pass


class EmptyWorkbook(IngestError):
    pass


class MissingRequiredColumn(IngestError):
    def __init__(self, message: str, *, columns: list[str]) -> None:
        super().__init__(message)
        self.columns = columns


class NoUsableRows(IngestError):
    pass


# ---------- AJUSTEMENTS ----------
class EmptyAdjustmentSet(StockroomError):
    pass


class TransactionError(StockroomError):
    status_code = 500


# ---------- PARTS ----------
class PartNotFound(StockroomError):
    status_code = 404


class PartConflict(StockroomError):
    status_code = 409


class PartValidationError(StockroomError):
    pass


class MissingItemNotFound(StockroomError, IndexError):
    status_code = 404


class UploadTooLarge(IngestError):
    status_code = 413
