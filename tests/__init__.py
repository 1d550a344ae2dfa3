"""Test package for the Mental Math Trainer.

Core tests drive the session with a fake clock. UI tests run pygame with
the SDL dummy drivers so no real window is opened. Run ``pytest`` from the
project root.
"""
