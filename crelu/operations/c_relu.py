"""
Concatenated ReLU. Forward: [F, B] -> [2*F, B]. Backward: [2*F, B] -> [F, B].

For every input element x the output holds relu(x) in the first F rows and
relu(-x) in the last F rows, so at most one branch is non-zero:

    x > 0  ->  [x, 0]
    x < 0  ->  [0, -x]
    x == 0 ->  [0, 0]

Backward takes the forward input again and selects the active branch:
grad_input = grad_pos where x > 0, -grad_neg where x < 0, and 0 at the kink.
A NaN input is neither positive nor negative and stays NaN in both passes.

See Shang et al., "Understanding and Improving Convolutional Neural Networks
via Concatenated Rectified Linear Units", ICML 2016.
"""

from typing import Any, Dict, Optional, Tuple, Union

import torch
import torch.nn as nn
from torch import Tensor

from ..logging_config import log_forward, log_backward
from .base import (
    cat2, split2, check_dtype, check_input, check_shape, check_grad_output, write_output,
    LayerState, coerce_state,
)

LAYER_TYPE = "CReLU"


# =============================================================================
# Kernels
# =============================================================================

@log_forward(LAYER_TYPE)
def crelu_forward(input: Tensor, output: Optional[Tensor] = None,
                  dtype: Optional[torch.dtype] = None) -> Tensor:
    """
    Forward kernel: [F, B] -> [relu(x); relu(-x)] = [2*F, B].

    Args:
        input: Input of shape [F, B], F >= 1, B >= 1. Not modified.
        output: Optional handle, resized to [2*F, B] and written in place.
        dtype: Computation dtype (default: input dtype).

    Returns:
        The output tensor (``output`` itself when given).
    """
    check_input(input)
    check_dtype(dtype, "dtype")
    x = input if dtype is None else input.to(dtype)

    # clamp keeps NaN, so it reaches both branches
    out_pos = torch.clamp(x, min=0)
    out_neg = torch.clamp(-x, min=0)

    return write_output(cat2(out_pos, out_neg), output)


@log_backward(LAYER_TYPE)
def crelu_backward(input: Tensor, grad_output: Tensor, grad_input: Optional[Tensor] = None,
                   dtype: Optional[torch.dtype] = None) -> Tensor:
    """
    Backward kernel: gradient w.r.t. input from the [2*F, B] upstream gradient.

    Args:
        input: The [F, B] tensor that was passed to forward.
        grad_output: Upstream gradient [grad_pos; grad_neg] of shape [2*F, B].
        grad_input: Optional handle, resized to [F, B] and written in place.
        dtype: Computation dtype (default: grad_output dtype).

    Returns:
        The gradient tensor (``grad_input`` itself when given).
    """
    check_grad_output(input, grad_output)
    check_dtype(dtype, "dtype")
    g = grad_output if dtype is None else grad_output.to(dtype)
    grad_pos, grad_neg = split2(g)
    zero = torch.zeros((), dtype=g.dtype, device=g.device)

    # An inactive branch contributes exactly zero, also for inf/NaN upstream values
    result = torch.where(input > 0, grad_pos, zero) - torch.where(input < 0, grad_neg, zero)

    nan_mask = torch.isnan(input)
    if nan_mask.any():
        if not result.is_floating_point():
            result = result.to(input.dtype)
        result = result.masked_fill(nan_mask, float('nan'))

    return write_output(result, grad_input)


# =============================================================================
# Layer
# =============================================================================

class CReLUType:
    """
    A concatenated ReLU has two outputs, one ReLU and one negative ReLU,
    concatenated together. Because it has two outputs, CReLU doubles the
    feature dimension. Works only for 2-D [features, batch] tensors.

    The layer has no parameters and keeps no reference to the tensors it
    sees: backward needs the forward input passed again by the caller, which
    makes an instance safe to share between threads working on different
    tensors.

    Args:
        input_dtype: Inputs are cast to this dtype before use (default: keep).
        output_dtype: Dtype of the computation and of freshly allocated
            results (default: the input dtype). A caller-supplied output
            handle keeps its own dtype.
    """

    layer_type = LAYER_TYPE

    def __init__(self, input_dtype: Optional[torch.dtype] = None,
                 output_dtype: Optional[torch.dtype] = None):
        check_dtype(input_dtype, "input_dtype")
        check_dtype(output_dtype, "output_dtype")
        self.input_dtype = input_dtype
        self.output_dtype = output_dtype

    def _cast_input(self, input: Tensor) -> Tensor:
        if self.input_dtype is None or not isinstance(input, Tensor):
            return input
        return input.to(self.input_dtype)

    def forward(self, input: Tensor, output: Optional[Tensor] = None) -> Tensor:
        """Ordinary feed forward pass: [F, B] -> [2*F, B]."""
        return crelu_forward(self._cast_input(input), output, dtype=self.output_dtype)

    def backward(self, input: Tensor, grad_output: Tensor,
                 grad_input: Optional[Tensor] = None) -> Tensor:
        """
        Ordinary feed backward pass.

        Args:
            input: The propagated input activation, as given to forward.
            grad_output: The backpropagated error, [2*F, B].
            grad_input: Optional handle for the calculated gradient.
        """
        return crelu_backward(self._cast_input(input), grad_output, grad_input,
                              dtype=self.output_dtype)

    def output_shape(self, input_shape: Tuple[int, int]) -> Tuple[int, int]:
        """Shape of the forward output for an input of ``input_shape``."""
        f, b = check_shape(input_shape)
        return 2 * f, b

    def clone(self) -> 'CReLUType':
        return type(self)(input_dtype=self.input_dtype, output_dtype=self.output_dtype)

    def serialize(self) -> Dict[str, Any]:
        """The layer has no learned state: only its type tag and version."""
        return LayerState(self.layer_type).to_dict()

    @classmethod
    def from_state(cls, state: Union[LayerState, Dict[str, Any]], **kwargs) -> 'CReLUType':
        """Rebuild a layer from ``serialize()`` output; kwargs go to the constructor."""
        coerce_state(state, cls.layer_type)
        return cls(**kwargs)

    def __eq__(self, other):
        if not isinstance(other, CReLUType):
            return NotImplemented
        return (self.input_dtype, self.output_dtype) == (other.input_dtype, other.output_dtype)

    def __hash__(self):
        return hash((self.layer_type, self.input_dtype, self.output_dtype))

    def __repr__(self):
        return f"{type(self).__name__}(input_dtype={self.input_dtype}, output_dtype={self.output_dtype})"


# Standard CReLU layer.
CReLU = CReLUType


# =============================================================================
# Autograd integration
# =============================================================================

class CReLUFunction(torch.autograd.Function):
    """CReLU as an autograd op. The engine retains the input for backward."""

    @staticmethod
    def forward(ctx, input: Tensor) -> Tensor:
        ctx.save_for_backward(input)
        return crelu_forward(input)

    @staticmethod
    def backward(ctx, grad_output: Tensor) -> Tensor:
        input, = ctx.saved_tensors
        return crelu_backward(input, grad_output)


def crelu(x: Tensor, feature_dim: int = 0) -> Tensor:
    """
    Differentiable CReLU.

    Args:
        x: 2-D tensor.
        feature_dim: 0 for [features, batch] layout, 1 for [batch, features].
    """
    if feature_dim == 0:
        return CReLUFunction.apply(x)
    if feature_dim == 1:
        check_input(x)
        return CReLUFunction.apply(x.t()).t()
    raise ValueError(f"feature_dim must be 0 or 1, got {feature_dim}")


class CReLUModule(nn.Module):
    """
    Parameter-free ``nn.Module`` wrapper around ``crelu``.

    Usage:
        model = nn.Sequential(nn.Linear(8, 16), CReLUModule(feature_dim=1), nn.Linear(32, 4))
    """

    def __init__(self, feature_dim: int = 0):
        super().__init__()
        if feature_dim not in (0, 1):
            raise ValueError(f"feature_dim must be 0 or 1, got {feature_dim}")
        self.feature_dim = feature_dim

    def forward(self, x: Tensor) -> Tensor:
        return crelu(x, self.feature_dim)

    def extra_repr(self) -> str:
        return f"feature_dim={self.feature_dim}"
