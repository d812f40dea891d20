"""DuckDB checkpoint store for stage tables."""

import re
from pathlib import Path
from typing import Optional

import duckdb
import polars as pl

# Stage tables are addressed by name in SQL text, so names are restricted
TABLE_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class PipelineStore:
    """
    Stage tables (module records, read depth, annotated genes, normalized
    abundance) kept in one DuckDB file.

    Each saved table gets a row in ``_checkpoints`` with its row count and
    the hash of the configuration it was built from. The module database
    and read depth are expensive to rebuild (network fetches, full passes
    over raw reads), so commands reuse an existing checkpoint unless asked
    to rebuild it.
    """

    def __init__(self, db_path: Path):
        """
        Open (or create) the store.

        Args:
            db_path: DuckDB database file; parent directories are created.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path))

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS _checkpoints (
                table_name VARCHAR PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                config_hash VARCHAR,
                description VARCHAR
            )
        """)

    @staticmethod
    def _check_name(table_name: str) -> str:
        if not TABLE_NAME_RE.fullmatch(table_name) or table_name.startswith("_"):
            raise ValueError(f"Invalid stage table name: {table_name!r}")
        return table_name

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        config_hash: Optional[str] = None,
    ) -> None:
        """
        Create or replace a stage table and its checkpoint row.

        Args:
            df: Stage output
            table_name: Stage table name (letters, digits, underscore)
            description: Free-text checkpoint description
            config_hash: Hash of the configuration the table was built from
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError("df must be a polars.DataFrame")
        table_name = self._check_name(table_name)

        self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM df")
        self.conn.execute("""
            INSERT OR REPLACE INTO _checkpoints
                (table_name, row_count, config_hash, description, created_at)
            VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)
        """, [table_name, df.height, config_hash, description])

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """Load a stage table, or None if it was never saved."""
        table_name = self._check_name(table_name)
        if not self.has_checkpoint(table_name):
            return None
        return self.conn.execute(f"SELECT * FROM {table_name}").pl()

    def has_checkpoint(self, table_name: str) -> bool:
        return self.checkpoint_info(table_name) is not None

    def checkpoint_info(self, table_name: str) -> Optional[dict]:
        """
        Checkpoint metadata for one stage table.

        Returns:
            Dict with table_name, created_at, row_count, config_hash,
            description; None if there is no checkpoint
        """
        row = self.conn.execute("""
            SELECT table_name, created_at, row_count, config_hash, description
            FROM _checkpoints
            WHERE table_name = ?
        """, [table_name]).fetchone()
        if row is None:
            return None
        return dict(zip(("table_name", "created_at", "row_count", "config_hash", "description"), row))

    def is_stale(self, table_name: str, config_hash: str) -> bool:
        """True if the checkpoint exists but was built from another configuration."""
        info = self.checkpoint_info(table_name)
        if info is None or info["config_hash"] is None:
            return False
        return info["config_hash"] != config_hash

    def list_checkpoints(self) -> list[dict]:
        """All checkpoints, ordered by table name."""
        result = self.conn.execute("""
            SELECT table_name, created_at, row_count, config_hash, description
            FROM _checkpoints
            ORDER BY table_name
        """).fetchall()

        return [
            {
                "table_name": row[0],
                "created_at": row[1],
                "row_count": row[2],
                "config_hash": row[3],
                "description": row[4],
            }
            for row in result
        ]

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        """Open the store at the configured duckdb_path."""
        return cls(config.duckdb_path)
