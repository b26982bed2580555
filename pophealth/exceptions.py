"""
Exceptions raised by the PopHealth-Explorer engine.

Data problems (missing fields, empty inputs, zero denominators, malformed
upstream payloads) are never raised; they degrade to well-defined empty
results. Only programmer-supplied configuration is validated loudly.
"""


class PopHealthError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message, context=None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self):
        if not self.context:
            return self.message
        details = ', '.join(f'{k}={v!r}' for k, v in self.context.items())
        return f'{self.message} ({details})'


class ConfigurationError(PopHealthError):
    """Invalid display mode, theme, tier scale, risk bands or category count."""
