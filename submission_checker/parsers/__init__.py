"""Readers for uploaded claim documents, spreadsheets and metadata."""

from .claim_xml import ClaimDocument, parse_claim_document
from .metadata import METADATA_KINDS, MetadataDocument, build_metadata, load_bundled, parse_metadata
from .tabular import SheetPolicy, Table, Workbook, read_workbook, select_table

__all__ = [
    "METADATA_KINDS",
    "ClaimDocument",
    "MetadataDocument",
    "SheetPolicy",
    "Table",
    "Workbook",
    "build_metadata",
    "load_bundled",
    "parse_claim_document",
    "parse_metadata",
    "read_workbook",
    "select_table",
]
