"""
MediTrack

A FastAPI-based patient/doctor appointment portal: booking admission,
single-claim appointment lifecycle, prescriptions, feedback and dashboards.
"""

__version__ = "1.0.0"
