"""
conftest.py
-----------
Pytest configuration: headless matplotlib backend so the plotting tests
run in CI without a display.
"""

import matplotlib

matplotlib.use("Agg")
