"""
Test helper utilities for cpap-edf testing.

This module provides reusable utilities for:
- Building synthetic EDF files byte by byte
- Laying out ResMed SD card directory trees
"""
