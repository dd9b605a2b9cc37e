import logging
import os
import uuid
from contextvars import ContextVar

from pythonjsonlogger import jsonlogger


request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[str | None] = ContextVar("user_id", default=None)


class ContextFilter(logging.Filter):
    """Stamp each record with the current request id and acting curator."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        # The formatter references both fields, so records emitted outside a
        # request still need the attributes.
        record.request_id = request_id_ctx.get() or ""
        record.user_id = user_id_ctx.get() or ""
        return True


def setup_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = []
    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(user_id)s")
    )
    handler.addFilter(ContextFilter())
    root.addHandler(handler)
    # Access lines duplicate the request metrics.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def bind_request_id(req_id: str | None = None) -> str:
    rid = req_id or str(uuid.uuid4())
    request_id_ctx.set(rid)
    user_id_ctx.set(None)
    return rid


def bind_user_id(user_id: str | None) -> None:
    user_id_ctx.set(user_id)
