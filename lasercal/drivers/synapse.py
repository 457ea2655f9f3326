"""A client for the HTTP/JSON API of TDT Synapse.

Synapse runs a small web server (port 24414 by default) that exposes the run
mode and the parameters of all gizmos in the running experiment.  The API
itself is stateless; this client keeps an ``aiohttp`` session open to reuse
connections.
"""
import asyncio
import logging
from typing import Any, Dict, List, Sequence, Tuple  # pylint: disable=unused-import

import aiohttp

from .. import constants as cs
from ..logger import ellipsicate
from .signal_host import ParameterInfo, RunMode, SignalHost

LOGGER = logging.getLogger('lasercal.drivers.synapse')

INFO_FIELDS = ('Name', 'Unit', 'Min', 'Max', 'Access', 'Type', 'Array')
"""Order of the fields in a parameter info reply."""


class SynapseClient(SignalHost):
    """Talk to a Synapse instance.

    Use as an async context manager or call ``open()`` and ``close()``.
    """

    def __init__(self, host: str = cs.DEFAULT_HOST, port: int = cs.SYNAPSE_PORT,
                 timeout: float = cs.SYNAPSE_REQUEST_TIMEOUT) -> None:
        self.url = 'http://{}:{}'.format(host, port)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = None  # type: aiohttp.ClientSession

    async def open(self) -> None:
        """Open the HTTP session and check that Synapse answers."""
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        try:
            mode = await self.get_mode()
        except ConnectionError:
            await self.close()
            raise
        LOGGER.info("Connected to Synapse at %s, currently in %s mode.",
                    self.url, mode.name)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> 'SynapseClient':
        await self.open()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    async def get_mode(self) -> RunMode:
        reply = await self._query('GET', '/system/mode')
        try:
            return RunMode[str(reply['mode']).upper()]
        except KeyError as err:
            raise ConnectionError("Unexpected mode reply: {}".format(
                ellipsicate(reply))) from err

    async def set_mode(self, mode: RunMode) -> None:
        await self._query('PUT', '/system/mode',
                          {'mode': mode.name.capitalize()})

    async def list_units(self) -> List[str]:
        return list((await self._query('GET', '/gizmos'))['gizmos'])

    async def get_unit_info(self, unit: str) -> Dict[str, Any]:
        return dict(await self._query('GET', '/gizmos/info/' + unit))

    async def get_unit_parent(self, unit: str) -> str:
        return str((await self._query('GET', '/gizmos/parent/' + unit))['parent'])

    async def get_sampling_rates(self) -> Dict[str, float]:
        rates = await self._query('GET', '/processor/samprates')
        return {str(name): float(rate) for name, rate in rates.items()}

    async def get_parameter_names(self, unit: str) -> List[str]:
        return list((await self._query('GET', '/params/' + unit))['parameters'])

    async def get_parameter_info(self, unit: str, param: str) -> ParameterInfo:
        reply = (await self._query('GET', '/params/info/{}.{}'.format(unit, param)))['info']
        if not isinstance(reply, dict):
            reply = dict(zip(INFO_FIELDS, reply))
        return ParameterInfo(name=str(reply['Name']),
                             unit=str(reply.get('Unit', '')),
                             min=float(reply['Min']),
                             max=float(reply['Max']),
                             access=str(reply.get('Access', '')),
                             type=str(reply.get('Type', '')),
                             array=int(reply.get('Array', 1)))

    async def get_parameter(self, unit: str, param: str) -> float:
        reply = await self._query('GET', '/params/{}.{}'.format(unit, param))
        return float(reply['value'])

    async def set_parameter(self, unit: str, param: str, value: float) -> bool:
        status, _ = await self._request('PUT', '/params/{}.{}'.format(unit, param),
                                        {'value': value})
        return status == 200

    async def get_parameter_values(self, unit: str, param: str,
                                   count: int = -1, offset: int = 0) -> List[float]:
        reply = await self._query('GET', '/params/{}.{}'.format(unit, param),
                                  {'count': count, 'offset': offset})
        return [float(value) for value in reply['values']]

    async def set_parameter_values(self, unit: str, param: str,
                                   values: Sequence[float], offset: int = 0) -> bool:
        status, _ = await self._request(
            'PUT', '/params/{}.{}'.format(unit, param),
            {'values': [float(value) for value in values], 'offset': offset})
        return status == 200

    async def _query(self, method: str, path: str, payload: Dict = None) -> Dict:
        """Do a request that must succeed and return the decoded reply.

        :raises ConnectionError: Synapse refused the request.
        """
        status, reply = await self._request(method, path, payload)
        if status != 200:
            raise ConnectionError("Synapse answered {} {} with status {}.".format(
                method, path, status))
        return reply

    async def _request(self, method: str, path: str,
                       payload: Dict = None) -> Tuple[int, Dict]:
        """Send a request, returning the HTTP status and the JSON reply.

        :raises ConnectionError: Synapse could not be reached or sent garbage.
        """
        if self._session is None:
            raise ConnectionError("Synapse client is not open.")
        LOGGER.debug("%s %s %s", method, path, ellipsicate(payload or ''))
        try:
            async with self._session.request(method, self.url + path,
                                             json=payload) as response:
                text = await response.text()
                if response.status != 200 or not text.strip():
                    return response.status, {}
                return response.status, await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as err:
            raise ConnectionError("Request {} {} to Synapse failed.".format(
                method, path)) from err
