# pacer.py
"""At most one command in flight on a half-duplex vehicle link."""
from __future__ import annotations

import logging
from typing import Optional

from drone_tracking.common import SteeringCommand
from drone_tracking.link import CommandLink, LinkError

logger = logging.getLogger(__name__)


class CommandPacer:
    """
    Holds back new commands until the vehicle acknowledges the previous one.

    Acknowledgments are fed in by the frame loop, which polls the link once
    per frame; nothing here blocks.
    """

    def __init__(self, link: CommandLink):
        self.link = link
        self._outstanding = False
        self.last_command: Optional[SteeringCommand] = None

    @property
    def outstanding(self) -> bool:
        return self._outstanding

    def try_dispatch(self, command: SteeringCommand) -> bool:
        """True if ``command`` went out on the link."""
        if self._outstanding:
            return False
        try:
            self.link.send(command.text)
        except LinkError as exc:
            logger.error("[Pacer] Dispatch of %r failed: %s", command.text, exc)
            return False
        self._outstanding = True
        self.last_command = command
        logger.info("[Pacer] Command: %s", command.text)
        return True

    def on_acknowledgment(self, response: Optional[str] = None) -> None:
        if response is not None and response.lower().startswith("error"):
            logger.warning("[Pacer] Vehicle rejected %r: %s",
                           self.last_command.text if self.last_command else None, response)
        else:
            logger.debug("[Pacer] Ack: %s", response)
        self._outstanding = False

    def reset(self) -> None:
        self._outstanding = False
