"""
Test package for Chess LLM Arena.

This package contains unit tests for the rules adapter, the engine and agent
players, the match runner, the tournament manager and the ELO estimator.
"""
