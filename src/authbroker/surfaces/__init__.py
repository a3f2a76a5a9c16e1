"""Navigable surfaces the login flow can drive.

- :class:`NavigableSurface` -- the abstract capability.
- :class:`HttpSurface` -- headless redirect follower, used for silent logins.
- :class:`PromptSurface` -- system browser plus pasted-back URL, used for
  interactive logins from a terminal.
"""

from authbroker.surfaces.base import (
    NavigableSurface,
    SurfaceClosedError,
    SurfaceFactory,
)
from authbroker.surfaces.http import HttpSurface
from authbroker.surfaces.prompt import PromptSurface

__all__ = [
    "HttpSurface",
    "NavigableSurface",
    "PromptSurface",
    "SurfaceClosedError",
    "SurfaceFactory",
]
