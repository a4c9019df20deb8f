"""
Test suite for MediTrack.

Contains service-level and API-level tests for booking admission, the
appointment lifecycle, clinical annotations and dashboard statistics.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
