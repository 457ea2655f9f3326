"""Talk to the human operator running a calibration.

The operator sets up the power meter, blocks and unblocks the laser beam and,
if no meter is hooked up to the signal host, types in readings.  All of this
happens through an ``Operator``, which keeps the measurement code independent
of the actual user interface.
"""
import logging
from typing import Iterable, List, Optional  # pylint: disable=unused-import

import aioconsole

LOGGER = logging.getLogger('lasercal.util.console')


class Operator:
    """The interface to the person running the calibration."""

    async def notify(self, message: str) -> None:
        """Tell the operator something.  Doesn't wait for a reaction."""
        raise NotImplementedError

    async def ask(self, message: str) -> str:
        """Ask the operator something and wait for the answer."""
        raise NotImplementedError

    async def confirm(self, message: str) -> None:
        """Wait for the operator to carry out the given instruction."""
        await self.ask(message + ' [Enter]')


class ConsoleOperator(Operator):
    """Use stdin and stdout, without blocking the event loop."""

    async def notify(self, message: str) -> None:
        LOGGER.debug("Notified operator: %s", message)
        await aioconsole.aprint(message)

    async def ask(self, message: str) -> str:
        answer = await aioconsole.ainput(message + ' ')
        LOGGER.debug('Operator answered "%s" to: %s', answer, message)
        return answer


class ScriptedOperator(Operator):
    """An operator whose answers are known beforehand.

    Confirmations don't consume answers.  Once all answers are used up, empty
    strings are returned.

    :attr messages: Everything that was shown to the operator, in order.
    """

    def __init__(self, answers: Iterable[str] = ()) -> None:
        self.answers = [str(answer) for answer in answers]
        self.messages = []  # type: List[str]

    async def notify(self, message: str) -> None:
        self.messages.append(message)

    async def ask(self, message: str) -> str:
        self.messages.append(message)
        return self.answers.pop(0) if self.answers else ''

    async def confirm(self, message: str) -> None:
        self.messages.append(message)
