"""phrasespam - phrase-based Bayesian spam classifier."""

__version__ = "0.1.0"
