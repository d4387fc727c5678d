# ul_ofdma/errors.py
"""Error taxonomy shared by the scheduler and simulator modules."""


class ConfigurationError(ValueError):
    """Unsupported PHY/catalog parameter. Fatal, never retried."""


class ScheduleInvariantError(AssertionError):
    """Internal inconsistency between a partition and its per-RU data."""
