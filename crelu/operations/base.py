"""
Base utilities for split-activation layers.

Tensors are 2-D with features along dim 0 and batch along dim 1:
- Forward input: [F, B]
- Forward output: [pos; neg] = [2*F, B]
- Backward: grad_output [2*F, B] -> grad_input [F, B]
"""

from dataclasses import dataclass
from typing import Any, Dict, NoReturn, Optional, Protocol, Tuple, Union, runtime_checkable

import torch
from torch import Tensor

from ..logging_config import get_logger


# Protocol version written by serialize(); bump when a layer gains fields.
STATE_VERSION = 0

# Element types for which negation is not a sign flip.
_UNSIGNED_DTYPES = tuple(
    getattr(torch, name) for name in ('bool', 'uint8', 'uint16', 'uint32', 'uint64')
    if hasattr(torch, name)
)


class PreconditionError(ValueError):
    """A tensor or state passed to a layer violates its call contract."""


def _fail(message: str) -> NoReturn:
    get_logger('crelu.error').error(message)
    raise PreconditionError(message)


# =============================================================================
# Layer protocol
# =============================================================================

@runtime_checkable
class Layer(Protocol):
    """Capability shared by every layer variant composed into a graph."""

    def forward(self, input: Tensor, output: Optional[Tensor] = None) -> Tensor:
        ...

    def backward(self, input: Tensor, grad_output: Tensor,
                 grad_input: Optional[Tensor] = None) -> Tensor:
        ...

    def serialize(self) -> Dict[str, Any]:
        ...


# =============================================================================
# Core: [2*F, B] row layout
# =============================================================================

def cat2(pos: Tensor, neg: Tensor) -> Tensor:
    """Concatenate the two branches along the feature dim."""
    return torch.cat([pos, neg], dim=0)


def split2(catted: Tensor) -> Tuple[Tensor, Tensor]:
    """Split [2*F, B] into its positive and negative branches."""
    h = catted.shape[0] // 2
    return catted[:h], catted[h:]


# =============================================================================
# Preconditions
# =============================================================================

def check_shape(shape, name: str = "input") -> Tuple[int, int]:
    """Validate a [features, batch] shape and return it as (F, B)."""
    shape = tuple(shape)
    if len(shape) != 2:
        _fail(f"{name} must be 2-D [features, batch], got shape {list(shape)}")
    f, b = shape
    if f < 1 or b < 1:
        _fail(f"{name} must be non-empty, got shape {list(shape)}")
    return f, b


def check_dtype(dtype: Optional[torch.dtype], name: str = "input") -> None:
    """Reject element types whose negation is not a sign flip (unsigned, bool, complex)."""
    if dtype is None:
        return
    if not isinstance(dtype, torch.dtype):
        _fail(f"{name} dtype must be a torch.dtype, got {dtype!r}")
    if dtype in _UNSIGNED_DTYPES or dtype.is_complex:
        _fail(f"{name} has unsupported dtype {dtype}")


def check_input(input: Tensor, name: str = "input") -> Tuple[int, int]:
    """Validate a forward input and return its (F, B) shape."""
    if not isinstance(input, Tensor):
        _fail(f"{name} must be a torch.Tensor, got {type(input).__name__}")
    if input.dim() != 2:
        _fail(f"{name} must be 2-D [features, batch], got shape {list(input.shape)}")
    check_dtype(input.dtype, name)
    return check_shape(input.shape, name)


def check_grad_output(input: Tensor, grad_output: Tensor) -> Tuple[int, int]:
    """Validate a backward call: grad_output must be [2*F, B] for input [F, B]."""
    f, b = check_input(input)
    if not isinstance(grad_output, Tensor):
        _fail(f"grad_output must be a torch.Tensor, got {type(grad_output).__name__}")
    check_dtype(grad_output.dtype, "grad_output")
    if tuple(grad_output.shape) != (2 * f, b):
        _fail(f"grad_output shape {list(grad_output.shape)} does not match "
              f"expected {[2 * f, b]} for input {list(input.shape)}")
    return f, b


# =============================================================================
# Output handles
# =============================================================================

def write_output(result: Tensor, out: Optional[Tensor]) -> Tensor:
    """
    Write a computed result into a caller-supplied handle.

    The handle is resized to the result's shape and keeps its own dtype;
    values are cast on copy. Without a handle the result itself is returned.
    """
    if out is None:
        return result
    if not isinstance(out, Tensor):
        _fail(f"output handle must be a torch.Tensor, got {type(out).__name__}")
    with torch.no_grad():
        if tuple(out.shape) != tuple(result.shape):
            out.resize_(result.shape)
        out.copy_(result)
    return out


# =============================================================================
# Serialization
# =============================================================================

@dataclass(frozen=True)
class LayerState:
    """Persisted form of a parameter-free layer: a type tag and a version."""
    layer_type: str
    version: int = STATE_VERSION

    def __post_init__(self):
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 0:
            _fail(f"invalid layer state version: {self.version!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.layer_type, "version": self.version}

    @classmethod
    def from_dict(cls, state: Dict[str, Any]) -> 'LayerState':
        try:
            layer_type = state["type"]
            version = state["version"]
        except (KeyError, TypeError):
            _fail(f"malformed layer state: {state!r}")
        return cls(layer_type=layer_type, version=version)


def coerce_state(state: Union[LayerState, Dict[str, Any]], layer_type: str) -> LayerState:
    """Normalize a state and check it belongs to ``layer_type`` at a known version."""
    if not isinstance(state, LayerState):
        state = LayerState.from_dict(state)
    if state.layer_type != layer_type:
        _fail(f"cannot load {state.layer_type!r} state into {layer_type!r} layer")
    if state.version > STATE_VERSION:
        _fail(f"{layer_type} state version {state.version} is newer than "
              f"supported version {STATE_VERSION}")
    return state
