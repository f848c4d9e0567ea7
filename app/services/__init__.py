"""
Application services module.
"""

from app.services.calculator import CalculationOutcome, run_calculation
from app.services.recorder import DatabaseRecorder, LoggingRecorder, Recorder

__all__ = [
    "CalculationOutcome",
    "run_calculation",
    "DatabaseRecorder",
    "LoggingRecorder",
    "Recorder",
]
