import os
import sys
import time
from enum import Enum
from typing import NamedTuple, Any, Callable, TypeAlias
from contextvars import ContextVar

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False

BOLD: str = "" if NO_COLOR else "\033[1m"
RESET: str = "" if NO_COLOR else "\033[0m"

TPrimitive: TypeAlias = (
	None | bool | int | float | str | bytes | list[Any] | tuple[Any, ...] | dict[str, Any]
)

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="chunked")


def color(code: int) -> str:
	return f"\033[0;38;5;{code}m" if COLOR else ""


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None


def levelNamed(name: str, default: LogLevel = LogLevel.Info) -> LogLevel:
	"""Returns the log level with the given (case-insensitive) name."""
	for level in LogLevel:
		if level.name.lower() == name.strip().lower():
			return level
	return default


# The threshold can be changed at runtime with `setLevel`.
LEVEL: list[LogLevel] = [LogLevel.Info]


def setLevel(level: LogLevel | str) -> LogLevel:
	LEVEL[0] = levelNamed(level) if isinstance(level, str) else level
	return LEVEL[0]


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(f"{BOLD}{k}{RESET}={formatData(v)}" for k, v in value.items())
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bytes):
		return repr(value)
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value < LEVEL[0].value:
		return entry
	clr: str = color(LOG_LEVEL_COLOR[entry.level])
	stream = sys.stderr
	if entry.type == LogType.Event:
		stream.write(
			f"{clr}{BOLD}[{entry.origin}] {entry.name}{RESET} {formatData(entry.value)} {formatData(entry.context)}{RESET}\n"
		)
	else:
		stream.write(
			f"{clr}{BOLD}[{entry.origin}]{RESET} {entry.message} {formatData(entry.context)}{RESET}\n"
		)
	stream.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
	)


def debug(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Debug, origin=origin, context=context)
	)


def info(message: str, *, origin: str | None = None, **context: TPrimitive) -> LogEntry:
	return send(entry(message=message, origin=origin, context=context))


def warning(
	message: str, *, origin: str | None = None, **context: TPrimitive
) -> LogEntry:
	return send(
		entry(message=message, level=LogLevel.Warning, origin=origin, context=context)
	)


def error(
	message: str,
	code: int | str | None = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event, value=value, type=LogType.Event, origin=origin, context=context
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = sys.stderr
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Swallow all exceptions so that this function can be called from an
		# exception handler safely.
		pass

	# Return the exception so that this function can be called like:
	#   raise exception(e)
	return exception


LOG_FUNCTION_LEVEL: dict[Callable[..., Any], LogLevel] = {
	debug: LogLevel.Debug,
	info: LogLevel.Info,
	event: LogLevel.Info,
	warning: LogLevel.Warning,
	error: LogLevel.Error,
}


def logged(item: Callable[..., Any]) -> bool:
	"""Takes one of the logging function, and tells if it is currently
	enabled. This is used to guard against running the whole entry
	building when not necessary, as in `logged(debug) and debug(…)`."""
	return LOG_FUNCTION_LEVEL.get(item, LogLevel.Exception).value >= LEVEL[0].value


def configure() -> LogLevel:
	"""Applies the log level from the configuration."""
	from ..config import LOG_LEVEL

	return setLevel(LOG_LEVEL)


configure()

# EOF
