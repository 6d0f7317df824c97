import logging
import sys


class _SafeExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.node_id = getattr(record, "node_id", "-")
        record.user_id = getattr(record, "user_id", "-")
        record.action = getattr(record, "action", "-")
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    formatter = _SafeExtraFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s node_id=%(node_id)s user_id=%(user_id)s action=%(action)s",
    )
    handler.setFormatter(formatter)

    root.setLevel(level.upper())
    root.addHandler(handler)
