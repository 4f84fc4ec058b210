"""Evaluator matching, scoring, and funding decision service."""
