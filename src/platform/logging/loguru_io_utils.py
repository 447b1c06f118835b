from inspect import Parameter, getfile, getsourcelines, signature, unwrap
from os.path import basename
import re
from time import time
from typing import Any, Callable

from src.platform.logging.loguru_io_config import (
    DEPTH_LINE,
    SENSITIVE_KEYWORDS,
    call_depth_var,
    chain_start_time_var,
)


MASK = '********'
MAX_CONTENT_LENGTH = 1000

# key=value, 'key': value and "key": value renderings inside a repr
_SENSITIVE_PATTERN = re.compile(
    r"(\b(?:%s)\b)(=|': |\": )'?[^,'\s)}]+'?" % '|'.join(sorted(SENSITIVE_KEYWORDS)),
    re.IGNORECASE,
)

_NAMED = (Parameter.POSITIONAL_OR_KEYWORD, Parameter.KEYWORD_ONLY)
_POSITIONAL = (Parameter.POSITIONAL_ONLY, Parameter.POSITIONAL_OR_KEYWORD)


def get_chain_start_time() -> float:
    """Start time of the outermost decorated call in the current context."""
    start_time = chain_start_time_var.get()
    if not start_time:
        start_time = time()
        chain_start_time_var.set(start_time)
    return start_time


def fetch_layer_depth() -> str:
    return DEPTH_LINE * max(call_depth_var.get() - 1, 0)


def reset_call_depth() -> None:
    depth = call_depth_var.get() - 1
    call_depth_var.set(depth)
    if depth <= 0:
        chain_start_time_var.set(0)


def build_call_target_func_path(func: Callable[..., Any]) -> str:
    target = getattr(func, '__func__', func)
    try:
        _, lineno = getsourcelines(target)
    except (OSError, TypeError):
        lineno = 0
    return f'{basename(getfile(target))}::{func.__qualname__}:{lineno}'


def normalize_args_kwargs(
    func: Callable[..., Any], *args: Any, **kwargs: Any
) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """Drop arguments the undecorated target does not accept."""
    params = list(signature(unwrap(func)).parameters.values())
    kinds = {param.kind for param in params}

    if Parameter.VAR_KEYWORD not in kinds:
        accepted = {param.name for param in params if param.kind in _NAMED}
        kwargs = {key: value for key, value in kwargs.items() if key in accepted}

    if Parameter.VAR_POSITIONAL not in kinds:
        slots = [p for p in params if p.kind in _POSITIONAL and p.name not in kwargs]
        args = args[: len(slots)]

    return args, kwargs


def mask_sensitive(data: Any) -> Any:
    rendered = str(data)
    masked = _SENSITIVE_PATTERN.sub(rf"\1\2'{MASK}'", rendered)
    return data if masked == rendered else masked


def should_mask_keyword(keyword: Any, value: Any) -> Any:
    return MASK if keyword in SENSITIVE_KEYWORDS else value


def truncate_content(content: Any) -> Any:
    rendered = str(content)
    overflow = len(rendered) - MAX_CONTENT_LENGTH
    if overflow <= 0:
        return content
    return f'{rendered[:MAX_CONTENT_LENGTH]}...<{overflow} more>'
