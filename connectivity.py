import logging

from controller import StateFlow, Subscription

logger = logging.getLogger(__name__)


class ConnectivitySignal:
    """
    Estado de conexión a la red. Lo alimenta quien observe la red
    (fuera de este núcleo); las funcionalidades sólo lo leen antes de
    llamar a los casos de uso.
    """

    def __init__(self, connected: bool = True):
        self._status = StateFlow(connected)

    def is_connected(self) -> bool:
        return self._status.value

    def set_connected(self, connected: bool):
        if self._status.set(connected):
            logger.info(f"Connectivity changed: {'online' if connected else 'offline'}")

    def subscribe(self) -> Subscription[bool]:
        return self._status.subscribe()
