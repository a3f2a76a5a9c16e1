"""The implicit-flow login: state, redirect parsing, profile augmentation and orchestration."""

from authbroker.flow.augment import ProfileAugmenter
from authbroker.flow.redirect import matches_callback, parse_redirect
from authbroker.flow.state import generate_state

__all__ = ["ProfileAugmenter", "generate_state", "matches_callback", "parse_redirect"]
