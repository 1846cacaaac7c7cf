"""
Logging configuration for CReLU debugging.

Channels (loggers):
- crelu.forward: Forward pass logging (shapes)
- crelu.backward: Backward pass logging (shapes, gradients)
- crelu.tensors: Detailed branch statistics (very verbose)
- crelu.error: Precondition failures

Usage:
    from crelu.logging_config import get_logger, enable_logging, set_level

    # Enable all channels at INFO level
    enable_logging()

    # Enable specific channels
    enable_logging(channels=['crelu.forward', 'crelu.backward'])

    # Branch statistics (very verbose)
    set_level('crelu.tensors', TENSOR_LEVEL)

    # Disable logging
    disable_logging()
"""

import logging
import functools
from typing import Callable, Iterable, Optional
from contextlib import contextmanager
import torch
from torch import Tensor


# =============================================================================
# Channels
# =============================================================================

# Logger name -> tag printed in front of each line
CHANNELS = {
    'crelu.forward': 'FWD',
    'crelu.backward': 'BWD',
    'crelu.tensors': 'TNS',
    'crelu.error': 'ERR',
}
TENSOR_CHANNEL = 'crelu.tensors'

TENSOR_LEVEL = 5  # below DEBUG
logging.addLevelName(TENSOR_LEVEL, 'TENSOR')

_LEVEL_COLORS = {
    TENSOR_LEVEL: '\033[90m',
    logging.DEBUG: '\033[36m',
    logging.INFO: '\033[32m',
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
}
_RESET = '\033[0m'


class CReLUFormatter(logging.Formatter):
    """``[TAG] message`` lines, colored by level when ``use_colors`` is set."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record):
        line = f"[{CHANNELS.get(record.name, record.name)}] {record.getMessage()}"
        if not self.use_colors:
            return line
        return f"{_LEVEL_COLORS.get(record.levelno, '')}{line}{_RESET}"


def _make_logger(name: str) -> logging.Logger:
    handler = logging.StreamHandler()
    handler.setFormatter(CReLUFormatter())
    logger = logging.getLogger(name)
    logger.handlers = [handler]
    logger.setLevel(logging.WARNING)
    logger.propagate = False
    return logger


_loggers = {name: _make_logger(name) for name in CHANNELS}


def get_logger(channel: str) -> logging.Logger:
    """Logger of a CReLU channel. Unknown names raise ``KeyError``."""
    return _loggers[channel]


def set_level(channel: str, level: int):
    get_logger(channel).setLevel(level)


def enable_logging(
    level: int = logging.INFO,
    channels: Optional[Iterable[str]] = None,
    include_tensors: bool = False
):
    """
    Enable CReLU logging.

    Args:
        level: Level for the selected channels (default INFO).
        channels: Channels to enable (default: every channel but tensors).
        include_tensors: Also open the tensors channel at TENSOR_LEVEL.
    """
    if channels is None:
        channels = [name for name in CHANNELS if name != TENSOR_CHANNEL]
    for name in channels:
        set_level(name, level)
    if include_tensors:
        set_level(TENSOR_CHANNEL, TENSOR_LEVEL)


def disable_logging():
    for name in CHANNELS:
        set_level(name, logging.CRITICAL)


@contextmanager
def logging_context(level: int = logging.DEBUG, channels: Optional[Iterable[str]] = None):
    """Enable logging inside a ``with`` block; levels are restored on exit."""
    saved = [(logger, logger.level) for logger in _loggers.values()]
    enable_logging(level, channels)
    try:
        yield
    finally:
        for logger, old_level in saved:
            logger.setLevel(old_level)


# =============================================================================
# Tensor Formatting Utilities
# =============================================================================

def format_shape(t: Optional[Tensor]) -> str:
    """Format tensor shape as string."""
    if t is None:
        return "None"
    return str(list(t.shape))


def format_tensor_stats(t: Optional[Tensor], name: str = "") -> str:
    """Format tensor statistics (min, max, mean)."""
    if t is None:
        return f"{name}: None"
    with torch.no_grad():
        prefix = f"{name}: " if name else ""
        if t.numel() == 0:
            return f"{prefix}shape={list(t.shape)}, empty"
        t = t.double()
        return (f"{prefix}shape={list(t.shape)}, "
                f"min={t.min().item():.4f}, max={t.max().item():.4f}, "
                f"mean={t.mean().item():.4f}")


def format_branch_tensor(t: Optional[Tensor], name: str = "") -> str:
    """Format a [2*F, B] tensor with positive/negative branch breakdown."""
    if t is None:
        return f"{name}: None"
    with torch.no_grad():
        prefix = f"{name}: " if name else ""
        if t.dim() == 0 or t.numel() == 0:
            return f"{prefix}shape={list(t.shape)}, empty"
        h = t.shape[0] // 2
        t = t.double()
        pos = t[:h]
        neg = t[h:]
        return (f"{prefix}shape={list(t.shape)}, "
                f"pos_mean={pos.mean().item():.4f}, neg_mean={neg.mean().item():.4f}, "
                f"z_mean={(pos - neg).mean().item():.4f}")


# =============================================================================
# Logging Decorators for Forward/Backward
# =============================================================================

def log_forward(layer_type: str):
    """
    Decorator to log the forward kernel of a layer.

    The wrapped function takes the input tensor as its first argument and
    returns the [2*F, B] output.

    Usage:
        @log_forward("CReLU")
        def crelu_forward(input, output=None):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            fwd_log = get_logger('crelu.forward')
            tensor_log = get_logger('crelu.tensors')

            input_tensor = args[0] if args else kwargs.get('input')

            if fwd_log.isEnabledFor(logging.DEBUG):
                fwd_log.debug(f"{layer_type}.forward ENTER: input={format_shape(input_tensor)}")

            if tensor_log.isEnabledFor(TENSOR_LEVEL) and isinstance(input_tensor, Tensor):
                tensor_log.log(TENSOR_LEVEL, f"{layer_type} input: {format_tensor_stats(input_tensor)}")

            result = func(*args, **kwargs)

            if fwd_log.isEnabledFor(logging.INFO):
                fwd_log.info(f"{layer_type}: {format_shape(input_tensor)} -> {format_shape(result)}")

            if tensor_log.isEnabledFor(TENSOR_LEVEL):
                tensor_log.log(TENSOR_LEVEL, f"{layer_type} output: {format_branch_tensor(result)}")

            return result
        return wrapper
    return decorator


def log_backward(layer_type: str):
    """
    Decorator to log the backward kernel of a layer.

    The wrapped function takes (input, grad_output, ...) and returns the
    gradient with respect to input.

    Usage:
        @log_backward("CReLU")
        def crelu_backward(input, grad_output, grad_input=None):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            bwd_log = get_logger('crelu.backward')
            tensor_log = get_logger('crelu.tensors')

            grad_tensor = args[1] if len(args) > 1 else kwargs.get('grad_output')

            if bwd_log.isEnabledFor(logging.DEBUG):
                bwd_log.debug(f"{layer_type}.backward ENTER: grad={format_shape(grad_tensor)}")

            if tensor_log.isEnabledFor(TENSOR_LEVEL) and isinstance(grad_tensor, Tensor):
                tensor_log.log(TENSOR_LEVEL, f"{layer_type} grad_out: {format_branch_tensor(grad_tensor)}")

            result = func(*args, **kwargs)

            if bwd_log.isEnabledFor(logging.INFO):
                bwd_log.info(f"{layer_type} bwd: {format_shape(grad_tensor)} -> {format_shape(result)}")

            if tensor_log.isEnabledFor(TENSOR_LEVEL):
                tensor_log.log(TENSOR_LEVEL, f"{layer_type} grad_in: {format_tensor_stats(result)}")

            return result
        return wrapper
    return decorator
