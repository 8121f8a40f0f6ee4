"""
Database Handler Module.

This module provides SQLite storage for processed invoices.

Features:
    - Automatic schema creation
    - Unique index on the duplicate checksum, so concurrent inserts of
      the same invoice cannot both succeed
    - Lookups used by duplicate detection
    - Paginated, sortable listing

All methods are blocking; async callers run them through
``asyncio.to_thread``. Each call opens its own connection.

Author: ML Engineering Team
"""

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from config import get_config
from invoice_intake.accounting.token_counter import TokenUsage
from invoice_intake.postprocessor.invoice_fields import LineItem
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import ensure_directory
from invoice_intake.utils.exceptions import (
    DatabaseError,
    DuplicateInvoiceError,
    InvoiceNotFoundError
)
from .invoice_record import Invoice, InvoiceStatus

# Initialize module logger
logger = get_logger(__name__)


SORTABLE_COLUMNS = (
    "created_at",
    "updated_at",
    "invoice_date",
    "due_date",
    "amount",
    "vendor_name",
    "customer_name",
    "invoice_number",
    "status",
    "processing_cost",
    "tokens_saved",
)


@dataclass
class InvoicePage:
    """One page of a listing."""
    items: List[Invoice]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size if self.page_size else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "invoices": [invoice.to_dict() for invoice in self.items],
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.total_pages,
        }


class DatabaseHandler:
    """
    Handles database operations for invoices.

    Attributes:
        db_path: Path to the SQLite database file
        table_name: Name of the invoices table

    Example:
        >>> db = DatabaseHandler("outputs/invoices.db")
        >>> db.insert(invoice)
        >>> db.get(invoice.id).amount
        5000
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None) -> None:
        """
        Initialize the database handler.

        Args:
            db_path: Path to database file. If None, uses configuration.
        """
        if db_path:
            self.db_path = Path(db_path)
        else:
            output_dir = Path(get_config("paths.output_dir", "outputs"))
            db_name = get_config("output.database.name", "invoices.db")
            self.db_path = output_dir / db_name

        self.table_name = get_config("output.database.table_name", "invoices")
        self.create_if_not_exists = get_config("output.database.create_if_not_exists", True)

        if not self.create_if_not_exists and not self.db_path.exists():
            raise DatabaseError("create", f"Database does not exist: {self.db_path}")

        ensure_directory(self.db_path.parent)
        self._create_tables()

        logger.info(f"DatabaseHandler initialized (db: {self.db_path})")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _create_tables(self) -> None:
        """Create the invoices table and its indexes."""
        create_sql = f"""
        CREATE TABLE IF NOT EXISTS {self.table_name} (
            id TEXT PRIMARY KEY,
            document_id TEXT NOT NULL,
            customer_name TEXT NOT NULL,
            vendor_name TEXT NOT NULL,
            invoice_number TEXT NOT NULL,
            invoice_date TEXT NOT NULL,
            due_date TEXT NOT NULL,
            amount INTEGER NOT NULL CHECK (amount >= 0),
            line_items TEXT NOT NULL,
            status TEXT NOT NULL,
            duplicate_checksum TEXT,
            input_tokens INTEGER NOT NULL DEFAULT 0,
            output_tokens INTEGER NOT NULL DEFAULT 0,
            processing_cost TEXT NOT NULL DEFAULT '0',
            used_cache INTEGER NOT NULL DEFAULT 0,
            tokens_saved INTEGER NOT NULL DEFAULT 0,
            conflict_with TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
        """

        try:
            with self._connect() as conn:
                conn.execute(create_sql)
                conn.execute(f"""
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_{self.table_name}_checksum
                    ON {self.table_name} (duplicate_checksum)
                """)
                conn.execute(f"""
                    CREATE INDEX IF NOT EXISTS idx_{self.table_name}_vendor_number
                    ON {self.table_name} (vendor_name, invoice_number)
                """)
            logger.debug("Database tables created/verified")
        except sqlite3.Error as e:
            raise DatabaseError("create tables", str(e)) from e

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_row(invoice: Invoice) -> Dict[str, Any]:
        return {
            "id": invoice.id,
            "document_id": invoice.document_id,
            "customer_name": invoice.customer_name,
            "vendor_name": invoice.vendor_name,
            "invoice_number": invoice.invoice_number,
            "invoice_date": invoice.invoice_date.isoformat(),
            "due_date": invoice.due_date.isoformat(),
            "amount": invoice.amount,
            "line_items": json.dumps([item.to_dict() for item in invoice.line_items]),
            "status": invoice.status.value,
            "duplicate_checksum": invoice.duplicate_checksum,
            "input_tokens": invoice.token_usage.input_tokens,
            "output_tokens": invoice.token_usage.output_tokens,
            "processing_cost": str(invoice.processing_cost),
            "used_cache": 1 if invoice.used_cache else 0,
            "tokens_saved": invoice.tokens_saved,
            "conflict_with": invoice.conflict_with,
            "created_at": invoice.created_at.isoformat() if invoice.created_at else None,
            "updated_at": invoice.updated_at.isoformat() if invoice.updated_at else None,
        }

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Invoice:
        return Invoice(
            id=row["id"],
            document_id=row["document_id"],
            customer_name=row["customer_name"],
            vendor_name=row["vendor_name"],
            invoice_number=row["invoice_number"],
            invoice_date=date.fromisoformat(row["invoice_date"]),
            due_date=date.fromisoformat(row["due_date"]),
            amount=row["amount"],
            line_items=[
                LineItem(description=item["description"], amount=item["amount"])
                for item in json.loads(row["line_items"])
            ],
            status=InvoiceStatus(row["status"]),
            duplicate_checksum=row["duplicate_checksum"],
            token_usage=TokenUsage(row["input_tokens"], row["output_tokens"]),
            processing_cost=Decimal(row["processing_cost"]),
            used_cache=bool(row["used_cache"]),
            tokens_saved=row["tokens_saved"],
            conflict_with=row["conflict_with"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )

    def _is_checksum_violation(self, error: sqlite3.IntegrityError) -> bool:
        message = str(error)
        return "duplicate_checksum" in message or f"idx_{self.table_name}_checksum" in message

    def _duplicate_error(self, invoice: Invoice) -> DuplicateInvoiceError:
        existing = self.find_by_checksum(invoice.duplicate_checksum)
        return DuplicateInvoiceError(
            invoice.vendor_name,
            invoice.invoice_number,
            invoice.amount,
            existing.id if existing else None
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, invoice: Invoice) -> Invoice:
        """
        Insert a new invoice.

        Args:
            invoice: Invoice to insert.

        Returns:
            The inserted invoice.

        Raises:
            DuplicateInvoiceError: If an invoice with the same checksum
                is already stored.
            DatabaseError: If insertion fails.
        """
        row = self._to_row(invoice)
        columns = ", ".join(row)
        placeholders = ", ".join(f":{column}" for column in row)

        try:
            with self._connect() as conn:
                conn.execute(
                    f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders})",
                    row
                )
        except sqlite3.IntegrityError as e:
            if self._is_checksum_violation(e):
                logger.warning(f"Checksum collision on insert: {invoice.invoice_number}")
                raise self._duplicate_error(invoice) from e
            raise DatabaseError("insert", str(e)) from e
        except sqlite3.Error as e:
            raise DatabaseError("insert", str(e)) from e

        logger.debug(f"Inserted invoice {invoice.id} ({invoice.invoice_number})")
        return invoice

    def update(self, invoice: Invoice) -> Invoice:
        """
        Overwrite a stored invoice by id.

        Raises:
            InvoiceNotFoundError: If no invoice has this id.
            DuplicateInvoiceError: If the new checksum belongs to another
                invoice.
            DatabaseError: If the update fails.
        """
        row = self._to_row(invoice)
        assignments = ", ".join(f"{column} = :{column}" for column in row if column != "id")

        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    f"UPDATE {self.table_name} SET {assignments} WHERE id = :id",
                    row
                )
                updated = cursor.rowcount
        except sqlite3.IntegrityError as e:
            if self._is_checksum_violation(e):
                raise self._duplicate_error(invoice) from e
            raise DatabaseError("update", str(e)) from e
        except sqlite3.Error as e:
            raise DatabaseError("update", str(e)) from e

        if updated == 0:
            raise InvoiceNotFoundError(invoice.id)

        logger.debug(f"Updated invoice {invoice.id}")
        return invoice

    def delete(self, invoice_id: str) -> bool:
        """
        Delete an invoice by id.

        Returns:
            True if deleted, False if not found.
        """
        try:
            with self._connect() as conn:
                cursor = conn.execute(f"DELETE FROM {self.table_name} WHERE id = ?", (invoice_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise DatabaseError("delete", str(e)) from e

        if deleted:
            logger.debug(f"Deleted invoice: {invoice_id}")
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _fetch(self, operation: str, query: str, params: tuple = ()) -> List[Invoice]:
        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(operation, str(e)) from e
        return [self._from_row(row) for row in rows]

    def get(self, invoice_id: str) -> Optional[Invoice]:
        """Retrieve an invoice by id, or None."""
        rows = self._fetch("get", f"SELECT * FROM {self.table_name} WHERE id = ?", (invoice_id,))
        return rows[0] if rows else None

    def find_by_checksum(self, checksum: Optional[str]) -> Optional[Invoice]:
        if not checksum:
            return None
        rows = self._fetch(
            "find_by_checksum",
            f"SELECT * FROM {self.table_name} WHERE duplicate_checksum = ? LIMIT 1",
            (checksum,)
        )
        return rows[0] if rows else None

    def find_exact(self, vendor_name: str, invoice_number: str, amount: int) -> Optional[Invoice]:
        """Find an invoice matching vendor, number and amount exactly."""
        rows = self._fetch(
            "find_exact",
            f"""
            SELECT * FROM {self.table_name}
            WHERE vendor_name = ? AND invoice_number = ? AND amount = ?
            LIMIT 1
            """,
            (vendor_name, invoice_number, amount)
        )
        return rows[0] if rows else None

    def find_by_vendor_and_number(self, vendor_name: str, invoice_number: str) -> List[Invoice]:
        return self._fetch(
            "find_by_vendor_and_number",
            f"""
            SELECT * FROM {self.table_name}
            WHERE vendor_name = ? AND invoice_number = ?
            ORDER BY created_at
            """,
            (vendor_name, invoice_number)
        )

    def list_invoices(
        self,
        page: int = 1,
        page_size: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> InvoicePage:
        """
        List invoices one page at a time.

        Args:
            page: 1-based page number.
            page_size: Invoices per page.
            sort_by: Column to sort on, one of SORTABLE_COLUMNS.
            sort_order: "asc" or "desc".

        Raises:
            ValueError: On an unknown column, order, or a non-positive
                page or page size.
        """
        if sort_by not in SORTABLE_COLUMNS:
            raise ValueError(f"Cannot sort by '{sort_by}'. Choose from: {', '.join(SORTABLE_COLUMNS)}")
        if sort_order.lower() not in ("asc", "desc"):
            raise ValueError(f"Sort order must be 'asc' or 'desc', got '{sort_order}'")
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")

        order = sort_order.upper()
        # processing_cost is stored as text to keep it exact
        sort_expr = "CAST(processing_cost AS REAL)" if sort_by == "processing_cost" else sort_by

        items = self._fetch(
            "list_invoices",
            f"""
            SELECT * FROM {self.table_name}
            ORDER BY {sort_expr} {order}, id {order}
            LIMIT ? OFFSET ?
            """,
            (page_size, (page - 1) * page_size)
        )
        return InvoicePage(items=items, total=self.get_count(), page=page, page_size=page_size)

    def get_all(self) -> List[Invoice]:
        """Retrieve every invoice, oldest first."""
        return self._fetch("get_all", f"SELECT * FROM {self.table_name} ORDER BY created_at")

    def get_count(self) -> int:
        """Get the total number of invoices in the database."""
        try:
            with self._connect() as conn:
                return conn.execute(f"SELECT COUNT(*) FROM {self.table_name}").fetchone()[0]
        except sqlite3.Error as e:
            raise DatabaseError("get_count", str(e)) from e
