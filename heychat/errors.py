"""Exceptions raised while rendering a streamed response."""


class RenderError(Exception):
    """Base class, anything that ends a render call early."""


class StreamError(RenderError):
    """The inbound token stream failed mid-response."""


class WriteError(RenderError):
    """The output device refused a write or flush."""
