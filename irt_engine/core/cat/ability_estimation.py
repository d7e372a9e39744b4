"""
Maximum Likelihood ability estimation for the 3PL IRT model.

Estimates ability (theta) from scored responses to calibrated items by
Newton-Raphson iteration on the 3PL log-likelihood, starting at theta = 0:

    theta_{k+1} = theta_k + L'(theta_k) / |L''(theta_k)|

The absolute value on the second derivative keeps every step pointed uphill
even where the 3PL log-likelihood is not concave (sparse data, responses far
from the item difficulties). It departs from textbook Newton-Raphson and is
kept as-is because it shapes convergence trajectories on edge-case data.
L'' is the exact observed second derivative of the 3PL log-likelihood, so
near the maximum the step is a plain Newton step and converges quadratically.

Iteration stops when |delta theta| < convergence_threshold or after
max_iterations, whichever comes first. There is no divergence guard beyond
the iteration cap; a non-converged estimate is returned with
``converged=False``.

Standard error is 1 / sqrt(total Fisher information) at the final theta,
or the sentinel 999.0 when the responses carry no information.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from irt_engine.core.cat.response_model import ResponseModel
from irt_engine.models import ScoredResponse

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 50
CONVERGENCE_THRESHOLD = 0.001

# Reported instead of infinity when total information is zero
STANDARD_ERROR_SENTINEL = 999.0

# Ability progression is re-estimated after every PROGRESSION_STEP attempts
PROGRESSION_STEP = 5

# Confidence bands on the standard error
HIGH_CONFIDENCE_SE = 0.3
MEDIUM_CONFIDENCE_SE = 0.5


@dataclass(frozen=True)
class AbilityEstimate:
    """Result of a single ability estimation."""

    theta: float
    standard_error: float
    attempts_count: int
    iterations: int = 0
    converged: bool = True

    def as_tuple(self) -> Tuple[float, float]:
        """Return (theta, standard_error)."""
        return (self.theta, self.standard_error)


@dataclass(frozen=True)
class ProgressionPoint:
    """Ability estimate after the first ``attempt_number`` responses."""

    attempt_number: int
    theta: float
    standard_error: float


class AbilityEstimator:
    """
    Newton-Raphson MLE of ability under the 3PL model.

    Stateless apart from its configuration; safe to share between threads.
    """

    def __init__(
        self,
        max_iterations: int = MAX_ITERATIONS,
        convergence_threshold: float = CONVERGENCE_THRESHOLD,
        standard_error_sentinel: float = STANDARD_ERROR_SENTINEL,
        response_model: Optional[ResponseModel] = None,
    ):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        if convergence_threshold <= 0:
            raise ValueError(
                f"convergence_threshold must be positive, got {convergence_threshold}"
            )
        self.max_iterations = max_iterations
        self.convergence_threshold = convergence_threshold
        self.standard_error_sentinel = standard_error_sentinel
        self.response_model = response_model or ResponseModel()

    def estimate(self, responses: Sequence[Tuple[float, float, float, Optional[bool]]]) -> AbilityEstimate:
        """
        Estimate ability from scored responses to calibrated items.

        Args:
            responses: Sequence of (a, b, c, is_correct) tuples, e.g.
                ScoredResponse records. Entries with is_correct None are
                ignored.

        Returns:
            AbilityEstimate. With no usable responses: theta=0.0,
            standard_error=999.0, attempts_count=0.

        Raises:
            ValueError: If any item has a non-positive discrimination or a
                guessing parameter outside [0, 1].
        """
        scored = [
            ScoredResponse(a, b, c, bool(is_correct))
            for a, b, c, is_correct in responses
            if is_correct is not None
        ]

        if not scored:
            return AbilityEstimate(
                theta=0.0,
                standard_error=self.standard_error_sentinel,
                attempts_count=0,
                iterations=0,
                converged=True,
            )

        for i, response in enumerate(scored):
            if response.discrimination <= 0:
                raise ValueError(
                    "Discrimination parameter must be positive, "
                    f"got {response.discrimination} for response {i}"
                )

        theta = 0.0
        iteration = 0
        converged = False

        while iteration < self.max_iterations:
            first_derivative, second_derivative = self._log_likelihood_derivatives(
                theta, scored
            )

            if second_derivative == 0.0:
                # Every response is degenerate at this theta: nothing to step on
                converged = True
                break

            delta = first_derivative / abs(second_derivative)
            if not math.isfinite(theta + delta):
                logger.warning(
                    f"Newton-Raphson step overflowed at theta={theta:.3f}; "
                    "stopping with the last finite estimate"
                )
                break
            theta += delta

            if abs(delta) < self.convergence_threshold:
                converged = True
                break

            iteration += 1

        if not converged and iteration >= self.max_iterations:
            logger.warning(
                f"Ability estimation did not converge in {self.max_iterations} "
                f"iterations; returning last theta={theta:.3f}"
            )

        total_information = sum(
            self.response_model.information(theta, r.discrimination, r.difficulty, r.guessing)
            for r in scored
        )
        if total_information > 0:
            standard_error = 1.0 / math.sqrt(total_information)
        else:
            standard_error = self.standard_error_sentinel

        logger.debug(
            f"MLE: theta={theta:.3f}, SE={standard_error:.3f}, "
            f"responses={len(scored)}, iterations={iteration}, converged={converged}"
        )

        return AbilityEstimate(
            theta=theta,
            standard_error=standard_error,
            attempts_count=len(scored),
            iterations=iteration,
            converged=converged,
        )

    def estimate_progression(
        self,
        responses: Sequence[Tuple[float, float, float, Optional[bool]]],
        step: int = PROGRESSION_STEP,
    ) -> List[ProgressionPoint]:
        """
        Re-estimate ability over growing prefixes of a time-ordered response list.

        A point is produced after every ``step`` responses (5, 10, 15, ...);
        a trailing partial block is not reported.

        Args:
            responses: Time-ascending (a, b, c, is_correct) tuples.
            step: Prefix increment.

        Returns:
            List of ProgressionPoint, oldest first.
        """
        if step < 1:
            raise ValueError(f"step must be >= 1, got {step}")

        progression = []
        for end in range(step, len(responses) + 1, step):
            estimate = self.estimate(responses[:end])
            progression.append(
                ProgressionPoint(
                    attempt_number=end,
                    theta=estimate.theta,
                    standard_error=estimate.standard_error,
                )
            )
        return progression

    def _log_likelihood_derivatives(
        self, theta: float, responses: List[ScoredResponse]
    ) -> Tuple[float, float]:
        """First and second derivatives of the 3PL log-likelihood at theta.

        Responses with P - c <= 0 or Q <= 0 contribute nothing.
        """
        first_derivative = 0.0
        second_derivative = 0.0

        for a, b, c, is_correct in responses:
            p = self.response_model.probability(theta, a, b, c)
            q = 1.0 - p
            p_minus_c = p - c

            if p_minus_c <= 0 or q <= 0:
                continue

            u = 1.0 if is_correct else 0.0

            # dP/dtheta and d2P/dtheta2 for the 3PL curve
            d_p = a * q * p_minus_c / (1.0 - c)
            d2_p = a * a * q * p_minus_c * (1.0 + c - 2.0 * p) / ((1.0 - c) * (1.0 - c))

            first_derivative += (u - p) * d_p / (p * q)
            second_derivative += (u - p) * d2_p / (p * q) - d_p * d_p * (
                u / (p * p) + (1.0 - u) / (q * q)
            )

        return first_derivative, second_derivative


def estimate_ability_mle(
    responses: Sequence[Tuple[float, float, float, Optional[bool]]],
    max_iterations: int = MAX_ITERATIONS,
    convergence_threshold: float = CONVERGENCE_THRESHOLD,
) -> Tuple[float, float]:
    """
    Estimate ability by Newton-Raphson MLE and return (theta, standard_error).

    Convenience wrapper over AbilityEstimator for callers that only need the
    point estimate and its standard error.
    """
    estimator = AbilityEstimator(
        max_iterations=max_iterations,
        convergence_threshold=convergence_threshold,
    )
    return estimator.estimate(responses).as_tuple()


def confidence_level(standard_error: float) -> str:
    """Map a standard error onto a coarse High / Medium / Low confidence label."""
    if standard_error < HIGH_CONFIDENCE_SE:
        return "High"
    if standard_error < MEDIUM_CONFIDENCE_SE:
        return "Medium"
    return "Low"
