"""Matplotlib figures for simulation and sensitivity results."""
