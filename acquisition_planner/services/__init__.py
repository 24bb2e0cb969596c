"""Calculators and stores behind the acquisition planner API."""
