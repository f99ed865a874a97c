"""
Scan models package.
"""
from perfwatch.features.scan.models.scan import Scan

__all__ = ["Scan"]
