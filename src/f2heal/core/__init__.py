"""Core waveform synthesis modules."""

from f2heal.core.channels import CHANNELS, Channel, GroupTiming, Side, resolve_groups

__all__ = ["CHANNELS", "Channel", "GroupTiming", "Side", "resolve_groups"]
