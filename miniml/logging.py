from datetime import datetime, timezone
import inspect
import json
import logging
import pathlib
import traceback
from typing import Callable, Dict, List


# QUESTION: Use a LoggingAdapter instead?
class MiniMLLogger:
    """Wraps a logging.Logger so that it's easy to use str.format syntax.

    Messages are formatted lazily, and the calling frame is only captured
    when the level is enabled, so disabled debug logging in the unifier stays
    cheap."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def debug(
        self, format_string: str, *args: object, **kwargs: object
    ) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            caller = inspect.stack(0)[1]
            _log(self._logger.debug, format_string, caller, args, kwargs)


class _LogRecordEncoder(json.JSONEncoder):
    """A JSON Encoder that supports logging.LogRecord objects."""

    def default(self, obj: object):
        if isinstance(obj, logging.LogRecord):
            caller = getattr(obj, 'caller', None)
            record = {
                'name': obj.name,
                'message': obj.getMessage(),
                # arguments for the formatting string don't need to be in the
                # JSON
                'level_name': obj.levelname,
                'path_name': obj.pathname,
                'file_name': pathlib.Path(obj.pathname).name,
                'module': obj.module,
                'exception': (
                    traceback.format_exception(*obj.exc_info)
                    if obj.exc_info
                    else None
                ),
                'line_number': obj.lineno,
                'function_name': obj.funcName,
                'created': datetime.fromtimestamp(
                    obj.created, timezone.utc
                ).isoformat(),
            }
            # Records logged through MiniMLLogger know their real caller.
            if caller is not None:
                record |= {
                    'path_name': caller.filename,
                    'file_name': pathlib.Path(caller.filename).name,
                    'module': caller.frame.f_globals['__name__'],
                    'line_number': caller.lineno,
                    'function_name': caller.function,
                }
            return record
        return super().default(obj)


class JSONFormatter(logging.Formatter):
    """A logging formatter for producing structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(record, cls=_LogRecordEncoder)


def _log(
    logging_method: Callable,
    format_string: str,
    caller: inspect.FrameInfo,
    args: List[object],
    kwargs: Dict[str, object],
) -> None:
    exc_info = None
    if 'exc_info' in kwargs:
        exc_info = kwargs['exc_info']
        del kwargs['exc_info']
    logging_method(
        _DelayedFormat(format_string, args, kwargs),
        exc_info=exc_info,
        extra={'caller': caller},
    )


class _DelayedFormat:
    def __init__(
        self, format_string: str, args: List[object], kwargs: Dict[str, object]
    ) -> None:
        self._format_string, self._args, self._kwargs = (
            format_string,
            args,
            kwargs,
        )

    def __str__(self) -> str:
        return self._format_string.format(*self._args, **self._kwargs)
