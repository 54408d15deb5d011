"""Connection lifecycle: loading, QR pairing, connected, errored.

Pairing needs two independent confirmations (the phone accepted the pairing
and the client finished its first sync) which can arrive in either order.
They are tracked as explicit pairing steps so "both seen" is a single
transition into ``PairingStep.COMPLETE``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class LifecycleState(Enum):
    LOADING = "loading"
    PAIRING = "pairing"
    CONNECTED = "connected"
    ERRORED = "errored"


class PairingStep(Enum):
    AWAITING_SCAN = "awaiting_scan"
    PAIRED = "paired"
    READY = "ready"
    COMPLETE = "complete"


class Signal(Enum):
    QR_SHOWN = "qr_shown"
    PAIR_SUCCEEDED = "pair_succeeded"
    CLIENT_READY = "client_ready"
    CONNECTED = "connected"
    FATAL = "fatal"


@dataclass(frozen=True)
class Transition:
    previous: LifecycleState
    current: LifecycleState
    pairing_completed: bool = False
    degraded: bool = False

    @property
    def changed(self) -> bool:
        return self.previous is not self.current


_PAIRING_STEPS: dict[tuple[PairingStep, Signal], PairingStep] = {
    (PairingStep.AWAITING_SCAN, Signal.PAIR_SUCCEEDED): PairingStep.PAIRED,
    (PairingStep.AWAITING_SCAN, Signal.CLIENT_READY): PairingStep.READY,
    (PairingStep.PAIRED, Signal.CLIENT_READY): PairingStep.COMPLETE,
    (PairingStep.READY, Signal.PAIR_SUCCEEDED): PairingStep.COMPLETE,
}


class Lifecycle:
    def __init__(self) -> None:
        self.state = LifecycleState.LOADING
        self.pairing_step: PairingStep | None = None

    @property
    def connected(self) -> bool:
        return self.state is LifecycleState.CONNECTED

    def apply(self, signal: Signal) -> Transition:
        """Single transition function for every lifecycle signal."""
        previous = self.state

        if signal is Signal.FATAL:
            if previous is LifecycleState.CONNECTED:
                return Transition(previous, previous, degraded=True)
            self.state = LifecycleState.ERRORED
            self.pairing_step = None
            return self._log(Transition(previous, self.state))

        if previous is LifecycleState.ERRORED or previous is LifecycleState.CONNECTED:
            return Transition(previous, previous)

        if signal is Signal.CONNECTED:
            self.state = LifecycleState.CONNECTED
            self.pairing_step = None
            return self._log(Transition(previous, self.state))

        if signal is Signal.QR_SHOWN:
            if previous is LifecycleState.LOADING:
                self.state = LifecycleState.PAIRING
                self.pairing_step = PairingStep.AWAITING_SCAN
            return self._log(Transition(previous, self.state))

        if previous is not LifecycleState.PAIRING or self.pairing_step is None:
            return Transition(previous, previous)

        step = _PAIRING_STEPS.get((self.pairing_step, signal))
        if step is None:
            return Transition(previous, previous)
        self.pairing_step = step
        logger.info("Pairing step -> %s", step.value)
        return Transition(previous, previous, pairing_completed=step is PairingStep.COMPLETE)

    @staticmethod
    def _log(transition: Transition) -> Transition:
        if transition.changed:
            logger.info(
                "Lifecycle %s -> %s", transition.previous.value, transition.current.value
            )
        return transition
