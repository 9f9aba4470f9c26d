import logging
import re
from typing import Iterable, Union

# Signing key material is the only secret this service handles.
_SECRET = re.compile(r"(sk_b64|signing_key|private_key)=\S+", re.IGNORECASE)


class RedactingFilter(logging.Filter):
    """Mask signing-key material that slips into a log message."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            record.msg = _SECRET.sub(r"\1=***", str(record.getMessage()))
            record.args = None
        except Exception:  # noqa: BLE001 - never drop a record over redaction
            pass
        return True


def setup_logging(
    level: Union[int, str] = logging.INFO,
    loggers: Iterable[str] = ("cairn_api", "cairn_sdk", "cairn_cli", "uvicorn", "uvicorn.access"),
) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level)
    redact = RedactingFilter()
    for name in loggers:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.addFilter(redact)
