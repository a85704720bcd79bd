"""Token estimation."""

from lethe.tokens.estimator import TokenEstimator, estimate_tokens

__all__ = ["TokenEstimator", "estimate_tokens"]
