"""
mksyscall: generate Go system call shims from //sys prototype lines.
"""

from __future__ import annotations

__version__ = "0.1.0"
