#!/usr/bin/env python3
"""
Watched File

Base class for dhcpd files that are parsed into an immutable tuple of records
and re-parsed when their modification time changes. A failed reload is logged
and the previous records stay in place.
"""

import os
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

logger = logging.getLogger('watched_file')


class WatchedFile:
    """Holds the last good parse of a file."""

    # Human readable name of the records, used in log messages
    kind = 'records'

    def __init__(self, file_path: str, parser: Callable[[str], Tuple], load: bool = True):
        self.file_path = file_path
        self.parser = parser
        self.last_modified = 0.0
        self.last_update: Optional[datetime] = None
        self.lock = threading.RLock()
        self._records: Tuple = ()

        if load:
            self.load_file()

    @property
    def records(self) -> Tuple:
        with self.lock:
            return self._records

    @property
    def loaded(self) -> bool:
        return self.last_update is not None

    def snapshot(self) -> Tuple[Tuple, Optional[datetime]]:
        """The current records together with the time they were loaded."""
        with self.lock:
            return self._records, self.last_update

    def load_file(self) -> bool:
        """Parse the file and swap in the new records. Returns True on success."""
        try:
            current_mtime = os.path.getmtime(self.file_path)
            with open(self.file_path, 'r', encoding='utf-8', errors='replace') as f:
                text = f.read()
        except OSError as e:
            logger.error(f"Failed to read {self.file_path}: {e}")
            return False

        try:
            records = self.parser(text)
        except ValueError as e:
            logger.error(f"Failed to parse {self.file_path}, keeping previous {self.kind}: {e}")
            return False

        with self.lock:
            self._records = records
            self.last_modified = current_mtime
            self.last_update = datetime.now(timezone.utc)

        logger.info(f"Loaded {len(records)} {self.kind} from {self.file_path}")
        return True

    def check_for_updates(self) -> bool:
        """Reload the file if it has been modified. Returns True if new records were loaded."""
        try:
            current_mtime = os.path.getmtime(self.file_path)
        except OSError as e:
            logger.error(f"Failed to stat {self.file_path}: {e}")
            return False

        if self.last_update is not None and current_mtime <= self.last_modified:
            return False

        logger.info(f"{self.file_path} has changed, reloading...")
        return self.load_file()
