"""File handler for log files that may contain client addresses."""

from __future__ import annotations

import os
from logging.handlers import WatchedFileHandler
from typing import IO


class SecureWatchedFileHandler(WatchedFileHandler):
    """Create (and re-create after rotation) log files with mode ``0600``."""

    file_mode = 0o600

    def _open(self) -> IO[str]:
        fd = os.open(self.baseFilename, os.O_WRONLY | os.O_CREAT | os.O_APPEND, self.file_mode)
        # os.open only applies the mode to new files
        os.fchmod(fd, self.file_mode)
        return open(fd, self.mode, encoding=self.encoding, errors=self.errors)
