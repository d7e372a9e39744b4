"""
3-Parameter Logistic (3PL) response model.

    P(theta) = c + (1 - c) / (1 + exp(-a * (theta - b)))

Where:
    - theta: examinee ability
    - a: discrimination parameter
    - b: difficulty parameter
    - c: guessing (pseudo-chance) parameter

Fisher information for the 3PL model (Lord, 1980):

    I(theta) = a^2 * Q * (P - c)^2 / (P * (1 - c)^2)

with Q = 1 - P. Information is defined as 0 in the degenerate regions
P <= c and Q <= 0, where the derivative of P vanishes numerically.
"""

import math


def _validate_parameters(theta: float, a: float, c: float) -> None:
    if not math.isfinite(theta):
        raise ValueError(f"Theta must be finite, got {theta}")
    if a <= 0:
        raise ValueError(f"Discrimination parameter must be positive, got {a}")
    if not 0.0 <= c <= 1.0:
        raise ValueError(f"Guessing parameter must be in [0, 1], got {c}")


def _logistic(logit: float) -> float:
    # Branch on sign so exp() only ever sees a non-positive argument
    if logit >= 0:
        return 1.0 / (1.0 + math.exp(-logit))
    exp_logit = math.exp(logit)
    return exp_logit / (1.0 + exp_logit)


def probability_3pl(theta: float, a: float, b: float, c: float) -> float:
    """
    Probability of a correct response under the 3PL model.

    Args:
        theta: Ability level.
        a: Item discrimination (must be > 0).
        b: Item difficulty.
        c: Item guessing parameter, in [0, 1].

    Returns:
        Probability in [c, 1]. Never NaN for finite inputs, including
        |theta - b| large enough to overflow a naive exp().

    Raises:
        ValueError: If theta is not finite, a <= 0, or c is outside [0, 1].
    """
    _validate_parameters(theta, a, c)

    prob = c + (1.0 - c) * _logistic(a * (theta - b))
    return min(1.0, max(c, prob))


def fisher_information_3pl(theta: float, a: float, b: float, c: float) -> float:
    """
    Fisher information of a 3PL item at a given ability level.

    Args:
        theta: Ability level.
        a: Item discrimination (must be > 0).
        b: Item difficulty.
        c: Item guessing parameter, in [0, 1].

    Returns:
        Non-negative information. 0.0 when P <= c or Q <= 0.

    Raises:
        ValueError: If theta is not finite, a <= 0, or c is outside [0, 1].
    """
    p = probability_3pl(theta, a, b, c)
    q = 1.0 - p
    p_minus_c = p - c

    if p_minus_c <= 0 or q <= 0:
        return 0.0

    return (a * a * q * p_minus_c * p_minus_c) / (p * (1.0 - c) * (1.0 - c))


class ResponseModel:
    """Injectable wrapper around the 3PL functions."""

    def probability(self, theta: float, a: float, b: float, c: float) -> float:
        return probability_3pl(theta, a, b, c)

    def information(self, theta: float, a: float, b: float, c: float) -> float:
        return fisher_information_3pl(theta, a, b, c)
