#!/usr/bin/env python3
"""
beatmix - beat-synchronized mixing engine
"""

__version__ = "1.0.0"
