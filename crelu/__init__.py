"""
Concatenated ReLU (CReLU) layer for PyTorch tensors.

A CReLU concatenates a ReLU and a negated ReLU of its input, doubling the
feature dimension:

    input  [F, B]  ->  output [relu(x); relu(-x)]  [2*F, B]

The layer holds no parameters and no hidden state. Backward takes the
forward input again, so one instance can serve any number of graphs.

Three front ends share the same kernels:
- CReLU: explicit forward/backward/serialize layer for external graph executors
- CReLUFunction / crelu: torch.autograd op
- CReLUModule: nn.Module adapter (feature_dim=0 for [F, B], 1 for [B, F])

Usage:
    from crelu import CReLU

    layer = CReLU()
    out = layer.forward(x)                      # [2*F, B]
    grad_x = layer.backward(x, grad_out)        # [F, B]
    state = layer.serialize()                   # {'type': 'CReLU', 'version': 0}

    # Debug output
    from crelu import enable_logging
    enable_logging()
"""

from .operations import (
    # Layer
    CReLU,
    CReLUType,
    LAYER_TYPE,
    # Kernels
    crelu_forward,
    crelu_backward,
    # Autograd / nn
    CReLUFunction,
    crelu,
    CReLUModule,
    # Protocol and serialization
    Layer,
    LayerState,
    STATE_VERSION,
    PreconditionError,
)

from .logging_config import (
    get_logger,
    enable_logging,
    disable_logging,
    set_level,
    logging_context,
    TENSOR_LEVEL,
)

__version__ = "0.1.0"

__all__ = [
    'CReLU',
    'CReLUType',
    'LAYER_TYPE',
    'crelu_forward',
    'crelu_backward',
    'CReLUFunction',
    'crelu',
    'CReLUModule',
    'Layer',
    'LayerState',
    'STATE_VERSION',
    'PreconditionError',
    'get_logger',
    'enable_logging',
    'disable_logging',
    'set_level',
    'logging_context',
    'TENSOR_LEVEL',
]
