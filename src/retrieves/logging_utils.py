"""Logging setup shared by the CLI and embedding editors."""

import logging

LOG_FORMAT = "%(levelname)s: %(name)s: %(message)s"
REDACTED = "***REDACTED***"


class TokenRedactionFilter(logging.Filter):
    """Logging filter that replaces a raw token with ``***REDACTED***``."""

    def __init__(self, token: str) -> None:
        super().__init__()
        self._token = token

    def _scrub(self, value: object) -> object:
        if self._token and self._token in str(value):
            return str(value).replace(self._token, REDACTED)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if self._token and self._token in str(record.msg):
            record.msg = str(record.msg).replace(self._token, REDACTED)
        if record.args:
            args = record.args
            if isinstance(args, tuple):
                record.args = tuple(self._scrub(a) for a in args)
            elif isinstance(args, dict):
                record.args = {k: self._scrub(v) for k, v in args.items()}
        return True


def setup_logging(verbose: bool = False, token: str | None = None) -> None:
    """Configure root logging; mask *token* in every emitted record."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # httpx logs every request URL at INFO
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    if token:
        redactor = TokenRedactionFilter(token)
        for handler in logging.getLogger().handlers:
            handler.addFilter(redactor)
