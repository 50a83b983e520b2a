"""Sequential SQL output file for one backup run.

``SQLWriter`` frames the script with a header, the integrity-bypass
directive, the restore directive and a footer. Every ``write`` awaits the
hand-off to the file in a worker thread, so a producer can never get
ahead of the disk by more than one chunk.
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


def backup_filename(database: str, timestamp: datetime) -> str:
    """``backup_<database>_<YYYY_MM_DD_HH_mm>.sql``"""
    return f"backup_{database}_{timestamp:%Y_%m_%d_%H_%M}.sql"


class SQLWriter:
    """Backpressure-aware writer bound to one output file.

    Args:
        output_dir: Directory for the backup file (created if missing).
        database: Database name, used in the file name and header.
        title: Header title line.
        bypass: Directive written after the header.
        restore: Directive written before the footer.
        timestamp: Generation time (default: now).
    """

    def __init__(
        self,
        output_dir: Path,
        database: str,
        title: str = "db-snapshot Backup",
        bypass: str = "",
        restore: str = "",
        timestamp: datetime | None = None,
    ) -> None:
        self.timestamp = timestamp or datetime.now()
        self.path = Path(output_dir) / backup_filename(database, self.timestamp)
        self._database = database
        self._title = title
        self._bypass = bypass
        self._restore = restore
        self._file: TextIO | None = None
        self._finished = False

    @property
    def is_open(self) -> bool:
        return self._file is not None

    async def open(self) -> None:
        if self._file is not None or self._finished:
            raise RuntimeError(f"SQLWriter for {self.path} was already opened")
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
        self._file = await asyncio.to_thread(open, self.path, "w", encoding="utf-8")
        logger.info("Writing backup to %s", self.path)

        header = (
            f"-- {self._title}\n"
            f"-- Database: {self._database}\n"
            f"-- Generated: {self.timestamp:%Y-%m-%d %H:%M:%S}\n"
            "\n"
        )
        if self._bypass:
            header += f"{self._bypass}\n\n"
        await self.write(header)

    async def write(self, text: str) -> None:
        """Append text, returning once the file has accepted it."""
        if self._file is None:
            raise RuntimeError("SQLWriter is not open")
        if text:
            await asyncio.to_thread(self._file.write, text)

    async def close(self) -> None:
        """Write the restore directive and footer, then close the file."""
        if self._file is None:
            return
        footer = "\n"
        if self._restore:
            footer += f"{self._restore}\n\n"
        footer += "-- Backup completed.\n"
        await self.write(footer)
        await self._release()

    async def abort(self) -> None:
        """Close the file without a footer. The partial file stays on disk."""
        if self._file is None:
            return
        logger.warning("Backup aborted; partial file left at %s", self.path)
        await self._release()

    async def _release(self) -> None:
        file, self._file = self._file, None
        self._finished = True
        await asyncio.to_thread(file.close)
