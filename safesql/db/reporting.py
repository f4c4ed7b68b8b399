"""Error reporting hook and SQL/error journals."""

import logging
import traceback
from pathlib import Path
from typing import Callable, Optional, Union

from safesql.exceptions import DatabaseError

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[str], None]

JOURNAL_FORMAT = "%(asctime)s %(message)s"
JOURNAL_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def caller_context(limit: int = 2, skip_module: str = "safesql") -> str:
    """Describe the nearest frames outside SafeSQL, for debug annotations."""
    lines = []
    for frame in reversed(traceback.extract_stack()[:-1]):
        if f"/{skip_module}/" in frame.filename.replace("\\", "/"):
            continue
        lines.append(f"File: {frame.filename}, Line: {frame.lineno}, Function: {frame.name}")
        if len(lines) >= limit:
            break
    return "\n".join(lines)


class ErrorReporter:
    """Single funnel for fatal connection and query errors.

    The configured handler receives a human readable message and may raise to
    convert the error into the application's own type. Without a handler the
    message goes to the ``safesql`` log.
    """

    def __init__(self, handler: Optional[ErrorHandler] = None) -> None:
        self.handler = handler
        self.last_error: Optional[str] = None

    def set_handler(self, handler: Optional[ErrorHandler]) -> None:
        self.handler = handler

    def notify(self, message: str) -> None:
        self.last_error = message
        if self.handler is not None:
            self.handler(message)
        else:
            logger.error(message)

    def fail(self, error: DatabaseError) -> None:
        """Report ``error`` through the handler, then raise it."""
        self.notify(error.message)
        raise error

    def clear(self) -> None:
        self.last_error = None


class QueryJournal:
    """Appends executed statements and failures to plain text files."""

    def __init__(
        self,
        sql_log: Optional[Union[str, Path]] = None,
        error_log: Optional[Union[str, Path]] = None,
        debug: bool = False,
    ) -> None:
        self.sql_log = sql_log
        self.error_log = error_log
        self.debug = debug
        self._sql_logger = self._file_logger("sql", sql_log)
        self._error_logger = self._file_logger("errors", error_log)

    def _file_logger(self, name: str, path: Optional[Union[str, Path]]) -> Optional[logging.Logger]:
        if path is None:
            return None
        journal = logging.getLogger(f"{__name__}.journal.{name}.{id(self)}")
        journal.setLevel(logging.INFO)
        journal.propagate = False
        handler = logging.FileHandler(str(path), mode='a', encoding='utf-8', delay=True)
        handler.setFormatter(logging.Formatter(JOURNAL_FORMAT, JOURNAL_DATE_FORMAT))
        journal.addHandler(handler)
        return journal

    @property
    def logs_sql(self) -> bool:
        return self._sql_logger is not None

    def record_sql(self, sql: str) -> None:
        if self._sql_logger is None:
            return
        if self.debug:
            self._sql_logger.info(f"{sql}\n{caller_context()}\n")
        else:
            self._sql_logger.info(sql)

    def record_error(self, error_text: str, sql: str) -> None:
        """Write a failed statement to the error file, or the ``safesql`` debug log."""
        message = f"{error_text}\nQuery: {sql}\n{caller_context(limit=10)}"
        if self._error_logger is None:
            logger.debug(message)
        else:
            self._error_logger.info(message)

    def close(self) -> None:
        for journal in (self._sql_logger, self._error_logger):
            if journal is None:
                continue
            for handler in list(journal.handlers):
                handler.close()
                journal.removeHandler(handler)
