"""
Test the logging channels: forward/backward shape logging, branch
statistics, precondition error reporting and level restoration.
"""

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

import pytest
import torch

from crelu import CReLU, PreconditionError
from crelu.logging_config import (
    CHANNELS, TENSOR_LEVEL, CReLUFormatter, get_logger, enable_logging,
    disable_logging, set_level, logging_context, format_shape,
    format_tensor_stats, format_branch_tensor,
)
from utils import collect_tests, run_tests


class ListHandler(logging.Handler):
    """Collects formatted records in memory."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)

    @property
    def messages(self):
        return [r.getMessage() for r in self.records]


def _attach(channel: str) -> ListHandler:
    handler = ListHandler()
    get_logger(channel).addHandler(handler)
    return handler


def _detach(channel: str, handler: ListHandler):
    get_logger(channel).removeHandler(handler)


def test_channels_are_quiet_by_default():
    for name in CHANNELS:
        assert get_logger(name).level == logging.WARNING
        assert get_logger(name).propagate is False


def test_channel_table():
    assert set(CHANNELS) == {'crelu.forward', 'crelu.backward', 'crelu.tensors', 'crelu.error'}
    with pytest.raises(KeyError):
        get_logger('crelu')
    with pytest.raises(KeyError):
        set_level('crelu.nope', logging.DEBUG)
    record = logging.LogRecord('other', logging.INFO, __file__, 0, "hi", (), None)
    assert CReLUFormatter(use_colors=False).format(record) == "[other] hi"


def test_forward_and_backward_shapes_logged():
    fwd = _attach('crelu.forward')
    bwd = _attach('crelu.backward')
    try:
        with logging_context(logging.INFO):
            layer = CReLU()
            x = torch.tensor([[1.0, -2.0, 0.0]])
            layer.forward(x)
            layer.backward(x, torch.ones(2, 3))
    finally:
        _detach('crelu.forward', fwd)
        _detach('crelu.backward', bwd)

    assert "CReLU: [1, 3] -> [2, 3]" in fwd.messages
    assert "CReLU bwd: [2, 3] -> [1, 3]" in bwd.messages


def test_debug_enter_messages():
    fwd = _attach('crelu.forward')
    try:
        with logging_context(logging.DEBUG, channels=['crelu.forward']):
            CReLU().forward(torch.ones(2, 2))
    finally:
        _detach('crelu.forward', fwd)
    assert "CReLU.forward ENTER: input=[2, 2]" in fwd.messages


def test_logging_context_restores_levels():
    before = {name: get_logger(name).level for name in CHANNELS}
    with logging_context(logging.DEBUG):
        assert get_logger('crelu.forward').level == logging.DEBUG
    after = {name: get_logger(name).level for name in CHANNELS}
    assert before == after


def test_tensor_channel():
    tns = _attach('crelu.tensors')
    old_level = get_logger('crelu.tensors').level
    try:
        set_level('crelu.tensors', TENSOR_LEVEL)
        CReLU().forward(torch.tensor([[1.0, -3.0]]))
    finally:
        set_level('crelu.tensors', old_level)
        _detach('crelu.tensors', tns)

    assert any("pos_mean=0.5000" in m and "neg_mean=1.5000" in m for m in tns.messages)
    assert all(r.levelname == 'TENSOR' for r in tns.records)


def test_precondition_failure_is_logged():
    err = _attach('crelu.error')
    try:
        with pytest.raises(PreconditionError):
            CReLU().backward(torch.ones(2, 2), torch.ones(2, 2))
    finally:
        _detach('crelu.error', err)

    assert len(err.records) == 1
    assert err.records[0].levelno == logging.ERROR
    assert "grad_output shape [2, 2]" in err.messages[0]


def test_disable_and_enable_logging():
    before = {name: get_logger(name).level for name in CHANNELS}
    try:
        disable_logging()
        assert all(get_logger(n).level == logging.CRITICAL for n in CHANNELS)
        enable_logging(logging.INFO, include_tensors=True)
        assert get_logger('crelu.backward').level == logging.INFO
        assert get_logger('crelu.tensors').level == TENSOR_LEVEL
    finally:
        for name, level in before.items():
            set_level(name, level)


def test_formatter():
    record = logging.LogRecord('crelu.forward', logging.INFO, __file__, 0,
                               "CReLU: %s", ("ok",), None)
    assert CReLUFormatter(use_colors=False).format(record) == "[FWD] CReLU: ok"
    colored = CReLUFormatter(use_colors=True).format(record)
    assert colored.startswith('\033[32m[FWD]') and colored.endswith('\033[0m')


def test_format_helpers():
    assert format_shape(None) == "None"
    assert format_shape(torch.zeros(2, 3)) == "[2, 3]"
    assert format_tensor_stats(None, "x") == "x: None"
    assert "min=-1.0000" in format_tensor_stats(torch.tensor([[-1.0, 3.0]]))
    assert "empty" in format_tensor_stats(torch.zeros(0, 3))
    stats = format_branch_tensor(torch.tensor([[2.0], [0.0]]), "out")
    assert stats.startswith("out: shape=[2, 1]")
    assert "z_mean=2.0000" in stats


if __name__ == "__main__":
    success = run_tests(collect_tests(globals()), title="CReLU Logging Tests")
    sys.exit(0 if success else 1)
