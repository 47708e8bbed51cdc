import logging
from typing import Any

from focusflux.config import PermissionState
from focusflux.services.platform_notifications import NotificationCapability

logger = logging.getLogger(__name__)

_RAW_STATES = {
    "granted": PermissionState.GRANTED,
    "true": PermissionState.GRANTED,
    "denied": PermissionState.DENIED,
    "false": PermissionState.DENIED,
    "default": PermissionState.UNDETERMINED,
    "prompt": PermissionState.UNDETERMINED,
    "undetermined": PermissionState.UNDETERMINED,
    "not_determined": PermissionState.UNDETERMINED,
}


def coerce_permission_state(raw: Any) -> PermissionState:
    """Map whatever a platform reports onto PermissionState.

    Anything unrecognised counts as denied.
    """
    if isinstance(raw, PermissionState):
        return raw
    state = _RAW_STATES.get(str(raw).strip().lower())
    if state is None:
        logger.warning(f"Unrecognised permission state {raw!r}, treating as denied")
        return PermissionState.DENIED
    return state


class PermissionGate:
    """Asks and checks notification authorization.

    State is read live from the capability on every call and never cached.
    A platform error while checking or requesting counts as DENIED.
    """

    def __init__(self, capability: NotificationCapability) -> None:
        self._capability = capability

    def check_support(self) -> bool:
        try:
            return bool(self._capability.is_supported())
        except Exception as e:
            logger.error(f"Error checking notification support: {e}")
            return False

    async def current_state(self) -> PermissionState:
        if not self.check_support():
            return PermissionState.DENIED
        try:
            raw = await self._capability.permission_state()
        except Exception as e:
            logger.error(f"Error reading notification permission: {e}")
            return PermissionState.DENIED
        return coerce_permission_state(raw)

    async def request_permission(self) -> PermissionState:
        """Prompt for permission, but only while it is still undetermined.

        Once the user has decided (either way) this returns the current state
        without prompting again.
        """
        state = await self.current_state()
        if state != PermissionState.UNDETERMINED:
            return state

        try:
            raw = await self._capability.request_permission()
        except Exception as e:
            logger.error(f"Error requesting notification permission: {e}")
            return PermissionState.DENIED

        result = coerce_permission_state(raw)
        logger.info(f"Notification permission request result: {result.value}")
        return result
