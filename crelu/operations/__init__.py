"""
Split-activation operations.

Forward: [F, B] -> [pos; neg] = [2*F, B]
Backward: [2*F, B] -> [F, B]

This module contains the layer-level kernels and the layer, autograd and
nn.Module front ends built on them.
"""

from .base import (
    cat2, split2,
    check_dtype, check_shape, check_input, check_grad_output, write_output,
    Layer, LayerState, PreconditionError, STATE_VERSION, coerce_state,
)

from .c_relu import (
    LAYER_TYPE,
    crelu_forward, crelu_backward,
    CReLUType, CReLU,
    CReLUFunction, crelu, CReLUModule,
)

__all__ = [
    # Base
    'cat2', 'split2',
    'check_dtype', 'check_shape', 'check_input', 'check_grad_output', 'write_output',
    'Layer', 'LayerState', 'PreconditionError', 'STATE_VERSION', 'coerce_state',
    # CReLU
    'LAYER_TYPE',
    'crelu_forward', 'crelu_backward',
    'CReLUType', 'CReLU',
    'CReLUFunction', 'crelu', 'CReLUModule',
]
