"""Logging configuration for the command line."""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_HANDLER_NAME = "apitap"
_FALLBACK_ENV = "LOG_LEVEL"
_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}
_TEXT_FORMAT = "%(asctime)s %(levelname)5s %(filename)s:%(lineno)d: %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        fields = {"message": record.getMessage()}
        if record.exc_info:
            fields["error"] = self.formatException(record.exc_info)
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "fields": fields,
        }
        return json.dumps(payload, ensure_ascii=False)


def _parse_filter(spec: str) -> tuple[int, dict[str, int]]:
    """Parse ``level`` and ``target=level`` directives; bad ones are ignored."""
    root = logging.ERROR
    targets: dict[str, int] = {}
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        target, sep, level_name = part.rpartition("=")
        level = _LEVELS.get(level_name.strip().lower())
        if level is None:
            continue
        if sep:
            target = target.strip().replace("::", ".")
            if target:
                targets[target] = level
        else:
            root = level
    return root, targets


def init_tracing() -> logging.Handler:
    """Configure logging from APITAP_LOG_LEVEL and APITAP_LOG_FORMAT."""
    level = os.environ.get("APITAP_LOG_LEVEL")
    use_json = os.environ.get("APITAP_LOG_FORMAT", "").lower() == "json"
    return init_tracing_with(level, use_json)


def init_tracing_with(level: str | None, use_json: bool) -> logging.Handler:
    """Configure the root logger and return the installed handler.

    *level* takes directives such as ``"info"`` or ``"warn,apitap.fetcher=debug"``;
    when it is None the LOG_LEVEL environment variable is used, then ``info``.
    Calling this again replaces the previously installed handler.
    """
    spec = level if level is not None else os.environ.get(_FALLBACK_ENV, "info")
    root_level, targets = _parse_filter(spec)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(JsonFormatter() if use_json else logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(root_level)
    for target, target_level in targets.items():
        logging.getLogger(target).setLevel(target_level)
    return handler