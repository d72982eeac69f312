"""
Wirefly Display Stream
Ordered, bounded hand-off of display events to the presentation layer
"""

from typing import Union

from wirefly.core.channel import BoundedChannel, OverflowPolicy

# Number of display events buffered before the overflow policy applies
DISPLAY_BUFFER_SIZE = 128


class DisplayEventStream(BoundedChannel):
    """
    Channel of DisplayEvents written by the tick engine.

    Under ``block`` a slow renderer throttles the tick cycle itself; under
    ``drop_oldest`` the renderer loses history instead.
    """

    def __init__(self, capacity: int = DISPLAY_BUFFER_SIZE,
                 overflow: Union[OverflowPolicy, str] = OverflowPolicy.BLOCK):
        if isinstance(overflow, str):
            overflow = OverflowPolicy(overflow)
        super().__init__(capacity, overflow)
