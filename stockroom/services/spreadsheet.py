"""
Lecture d'un export de stock ERP (Excel / CSV) en FileRecord normalisés.

Aucun effet de bord : bytes in, records out. Les lignes inexploitables
(numéro vide, quantité illisible) sont ignorées, pas en erreur.
"""

from __future__ import annotations

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Iterable

import pandas as pd

from stockroom.app.schemas.reconciliation import FileRecord
from stockroom.services.errors import (
    EmptyWorkbook,
    MissingRequiredColumn,
    NoUsableRows,
    UnreadableWorkbook,
)

logger = logging.getLogger(__name__)

# Onglets conventionnels d'un export SAP, par priorité
SHEET_PRIORITY = ("RawData", "Format", "Header")

# openpyxl pour xlsx/xlsm, xlrd pour l'ancien format xls
EXCEL_ENGINES = ("openpyxl", "xlrd")

CATALOG_NUMBER_COLUMNS = ["Materiał", "Material", "Numer", "Catalog number"]
NAME_COLUMNS = ["Krótki tekst mat.", "Krótki tekst mat", "Nazwa", "Opis", "Description", "Name"]
UNIT_COLUMNS = ["Podst. jedn. miary", "Jednostka", "Base unit of measure", "Unit"]
QUANTITY_COLUMNS = ["Nieogranicz.wykorz.", "Nieograniczony zapas", "Unrestricted-use stock", "Quantity"]

_HEADER_NOISE_RE = re.compile(r"[\s./]")
_QUANTITY_NOISE_RE = re.compile(r"[\s']")
_PLACEHOLDER_HEADER = "Unnamed:"


# ---------- COLONNES ----------
def normalize_header(header: object) -> str:
    return _HEADER_NOISE_RE.sub("", str(header).strip().lower())


def select_column(headers: Iterable[object], candidates: Iterable[str]) -> object | None:
    """
    Retourne l'en-tête (tel quel) correspondant au premier candidat.

    Passe 1 : égalité des formes normalisées, dans l'ordre des candidats.
    Passe 2 : inclusion (l'en-tête contient le candidat).
    """
    normalized = [(header, normalize_header(header)) for header in headers]
    candidate_keys = [normalize_header(c) for c in candidates]

    for candidate in candidate_keys:
        for header, key in normalized:
            if key == candidate:
                return header

    for candidate in candidate_keys:
        if not candidate:
            continue
        for header, key in normalized:
            if candidate in key:
                return header

    return None


# ---------- VALEURS ----------
def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def cell_to_text(value: object) -> str | None:
    """Texte nettoyé d'une cellule ; None si vide."""
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # colonne numérique lue en float par pandas : 1234.0 -> "1234"
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_quantity(value: object) -> Decimal | None:
    """
    Quantité exacte depuis une cellule numérique ou un texte localisé.

    "1 234,5" -> 1234.5 ; "1,234.5" -> 1234.5 ; "1.234,5" -> 1234.5 ;
    "12,5" -> 12.5. Retourne None si illisible ou non fini.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    else:
        raw = _QUANTITY_NOISE_RE.sub("", str(value))
        if not raw:
            return None

        last_comma = raw.rfind(",")
        last_dot = raw.rfind(".")
        if last_comma >= 0 and last_dot >= 0:
            if last_comma > last_dot:
                raw = raw.replace(".", "").replace(",", ".")
            else:
                raw = raw.replace(",", "")
        elif raw.count(",") > 1:
            raw = raw.replace(",", "")
        elif last_comma >= 0:
            raw = raw.replace(",", ".")
        elif raw.count(".") > 1:
            raw = raw.replace(".", "")

    try:
        quantity = Decimal(raw)
    except InvalidOperation:
        return None
    if not quantity.is_finite():
        return None
    return quantity


# ---------- CLASSEUR ----------
def _read_tables(file_bytes: bytes, filename: str | None) -> dict[str, pd.DataFrame]:
    if filename and filename.lower().endswith(".csv"):
        try:
            return {"csv": pd.read_csv(BytesIO(file_bytes), dtype=object, sep=None, engine="python")}
        except pd.errors.EmptyDataError:
            return {}
        except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise UnreadableWorkbook(f"Could not read CSV file: {e}") from e

    last_error: Exception | None = None
    for engine in EXCEL_ENGINES:
        try:
            workbook = pd.ExcelFile(BytesIO(file_bytes), engine=engine)
        except Exception as e:  # noqa: BLE001
            last_error = e
            continue
        with workbook:
            return {
                str(name): workbook.parse(sheet_name=name, dtype=object)
                for name in workbook.sheet_names
            }

    raise UnreadableWorkbook(f"Could not read spreadsheet file: {last_error}")


def pick_sheet(sheet_names: list[str]) -> str | None:
    for name in SHEET_PRIORITY:
        if name in sheet_names:
            return name
    return sheet_names[0] if sheet_names else None


def extract_records(frame: pd.DataFrame) -> tuple[list[FileRecord], int]:
    """Convertit une table (1re ligne = en-tête) en FileRecord ; retourne (records, lignes ignorées)."""
    # en-tête vide : pandas génère "Unnamed: N", jamais candidat
    headers = [h for h in frame.columns if not str(h).startswith(_PLACEHOLDER_HEADER)]

    catalog_col = select_column(headers, CATALOG_NUMBER_COLUMNS)
    quantity_col = select_column(headers, QUANTITY_COLUMNS)
    name_col = select_column(headers, NAME_COLUMNS)
    unit_col = select_column(headers, UNIT_COLUMNS)

    missing = [
        label
        for label, column in (("catalog number", catalog_col), ("quantity", quantity_col))
        if column is None
    ]
    if missing:
        raise MissingRequiredColumn(
            f"Missing required column(s) in file: {', '.join(missing)}",
            columns=missing,
        )

    logger.debug(
        "Resolved columns: catalog=%r quantity=%r name=%r unit=%r",
        catalog_col,
        quantity_col,
        name_col,
        unit_col,
    )

    records: list[FileRecord] = []
    dropped = 0
    for row in frame.to_dict(orient="records"):
        catalog_number = cell_to_text(row.get(catalog_col))
        if catalog_number is None:
            dropped += 1
            continue

        quantity = parse_quantity(row.get(quantity_col))
        if quantity is None:
            dropped += 1
            continue

        unit = cell_to_text(row.get(unit_col)) if unit_col is not None else None
        name = cell_to_text(row.get(name_col)) if name_col is not None else None

        records.append(
            FileRecord(
                catalog_number=catalog_number,
                name=name,
                unit=unit.lower() if unit else None,
                quantity=quantity,
            )
        )

    return records, dropped


def ingest(file_bytes: bytes, filename: str | None = None) -> list[FileRecord]:
    """
    Parse un export de stock en FileRecord.

    Erreurs :
    - EmptyWorkbook : aucun onglet, ou onglet sans ligne de données
    - MissingRequiredColumn : pas de colonne numéro ou quantité
    - NoUsableRows : aucune ligne exploitable
    """
    tables = _read_tables(file_bytes, filename)
    sheet_name = pick_sheet(list(tables))
    if sheet_name is None:
        raise EmptyWorkbook("The file does not contain any sheets")

    frame = tables[sheet_name]
    if frame.empty:
        raise EmptyWorkbook(f"Sheet {sheet_name!r} does not contain any data")

    records, dropped = extract_records(frame)
    if not records:
        raise NoUsableRows("No usable rows could be read from the file")

    logger.info(
        "Ingested %d row(s) from sheet %r (%d dropped)",
        len(records),
        sheet_name,
        dropped,
    )
    return records
