"""
Testing utilities for layer gradients.

Compares the analytic backward pass of a layer against central finite
differences of its forward pass:

    numeric[i] = sum((forward(x + eps*e_i) - forward(x - eps*e_i)) * grad_output) / (2*eps)

Usage:
    from crelu import CReLU
    from crelu.testing import check_gradient

    result = check_gradient(CReLU(), torch.randn(4, 3, dtype=torch.float64))
    assert result.passed, result
"""

from dataclasses import dataclass
from typing import Optional

import torch
from torch import Tensor

from .logging_config import get_logger
from .operations.base import Layer


# =============================================================================
# Default Tolerances
# =============================================================================

DEFAULT_EPS = 1e-6
DEFAULT_ABS_TOL = 1e-6
DEFAULT_REL_TOL = 1e-5


@dataclass
class GradCheckResult:
    """Outcome of a finite-difference gradient check."""
    analytic: Tensor
    numeric: Tensor
    max_abs_error: float
    max_rel_error: float
    passed: bool

    def __str__(self):
        status = "PASS" if self.passed else "FAIL"
        return (f"GradCheck {status}: max_abs={self.max_abs_error:.2e}, "
                f"max_rel={self.max_rel_error:.2e}, shape={list(self.analytic.shape)}")


def numerical_gradient(layer: Layer, x: Tensor, grad_output: Tensor,
                       eps: float = DEFAULT_EPS) -> Tensor:
    """Central-difference estimate of d<forward(x), grad_output>/dx."""
    numeric = torch.zeros_like(x)
    with torch.no_grad():
        for idx in range(x.numel()):
            x_plus = x.clone()
            x_minus = x.clone()
            x_plus.view(-1)[idx] += eps
            x_minus.view(-1)[idx] -= eps
            diff = layer.forward(x_plus) - layer.forward(x_minus)
            numeric.view(-1)[idx] = (diff * grad_output).sum() / (2 * eps)
    return numeric


def check_gradient(layer: Layer, x: Tensor, grad_output: Optional[Tensor] = None,
                   eps: float = DEFAULT_EPS, abs_tol: float = DEFAULT_ABS_TOL,
                   rel_tol: float = DEFAULT_REL_TOL) -> GradCheckResult:
    """
    Check ``layer.backward`` against finite differences of ``layer.forward``.

    Elements of ``x`` closer than ``eps`` to a kink of the layer give a
    meaningless numeric estimate; pick inputs away from them.

    Args:
        layer: Any object implementing the Layer protocol.
        x: Input tensor (float64 recommended).
        grad_output: Upstream gradient (default: random, same shape as forward output).
        eps: Finite-difference step.
        abs_tol: Absolute tolerance.
        rel_tol: Relative tolerance.

    Returns:
        GradCheckResult. An element passes if its absolute error is within
        ``abs_tol`` or its relative error is within ``rel_tol``.
    """
    x = x.detach().contiguous()
    if grad_output is None:
        out = layer.forward(x)
        grad_output = torch.randn(out.shape, dtype=out.dtype, device=out.device)

    analytic = layer.backward(x, grad_output)
    numeric = numerical_gradient(layer, x, grad_output, eps)

    abs_err = (analytic - numeric).abs()
    rel_err = abs_err / numeric.abs().clamp(min=1e-12)
    passed = bool(((abs_err <= abs_tol) | (rel_err <= rel_tol)).all())

    result = GradCheckResult(
        analytic=analytic,
        numeric=numeric,
        max_abs_error=abs_err.max().item(),
        max_rel_error=rel_err.max().item(),
        passed=passed,
    )

    log = get_logger('crelu.backward')
    if passed:
        log.debug(str(result))
    else:
        log.warning(str(result))

    return result
