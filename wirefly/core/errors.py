"""
Wirefly Errors
Exception types raised across the synchronization core
"""


class WireflyError(Exception):
    """Base class for all wirefly errors"""


class TransportError(WireflyError):
    """Joining, reading from or writing to the broadcast transport failed"""


class TransportClosed(TransportError):
    """The transport subscription has been torn down"""


class PublishError(WireflyError):
    """An outbound tick could not be encoded or broadcast"""


class DecodeError(WireflyError, ValueError):
    """A payload could not be decoded into a wire record"""


class ChannelClosed(WireflyError):
    """Send attempted on a closed channel"""


class EngineHalted(WireflyError):
    """The tick engine observed its inbound stream close and stopped for good"""
