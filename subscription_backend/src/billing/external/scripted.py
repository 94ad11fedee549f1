"""
Scripted Gateway

Deterministic CardVaultGateway for tests and local development.

Responses are queued per operation and consumed in order; when a queue is
empty the gateway answers with a default success. Each step may carry a
delay (to exercise timeouts) or an exception to raise. Every call is logged.

Usage:
    gateway = ScriptedGateway()
    gateway.fail('purchase', 'Card declined')
    gateway.succeed('purchase', authorization='ch_42')
    gateway.script('store', GatewayResponse(True, 'ok', {'billing_id': 'cus_1'}), delay=0.5)

    await gateway.purchase(1000, 'cus_1')   # -> failure 'Card declined'
    gateway.calls_for('purchase')           # -> [GatewayCall('purchase', (1000, 'cus_1'), {...})]
"""

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Tuple

from subscription_backend.src.billing.domain.card import CreditCard
from .interfaces import CardVaultGateway, GatewayResponse

OPERATIONS = ('store', 'update', 'unstore', 'purchase')


@dataclass(frozen=True)
class GatewayCall:
    operation: str
    args: Tuple[Any, ...]
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScriptedStep:
    response: Optional[GatewayResponse] = None
    delay: float = 0.0
    error: Optional[BaseException] = None


class ScriptedGateway(CardVaultGateway):
    """A gateway whose every answer is decided up front."""

    def __init__(self, billing_id: str = '1', authorization_prefix: str = 'auth'):
        self.default_billing_id = billing_id
        self.authorization_prefix = authorization_prefix
        self.calls: List[GatewayCall] = []
        self._steps: Dict[str, Deque[ScriptedStep]] = {op: deque() for op in OPERATIONS}
        self._authorizations = itertools.count(1)

    # -------------------------------------------------------------------------
    # Scripting
    # -------------------------------------------------------------------------

    def script(
        self,
        operation: str,
        *responses: GatewayResponse,
        delay: float = 0.0
    ) -> 'ScriptedGateway':
        """Queue one or more responses for an operation."""
        queue = self._queue(operation)
        for response in responses:
            queue.append(ScriptedStep(response=response, delay=delay))
        return self

    def succeed(self, operation: str, message: str = 'Forced success', delay: float = 0.0, **params) -> 'ScriptedGateway':
        authorization = params.pop('authorization', None)
        return self.script(
            operation,
            GatewayResponse(True, message, params, authorization=authorization, test=True),
            delay=delay
        )

    def fail(self, operation: str, message: str = 'Forced failure', delay: float = 0.0) -> 'ScriptedGateway':
        return self.script(operation, GatewayResponse(False, message, test=True), delay=delay)

    def hang(self, operation: str, seconds: float) -> 'ScriptedGateway':
        """Delay the next answer, e.g. past a caller's timeout."""
        self._queue(operation).append(ScriptedStep(delay=seconds))
        return self

    def raise_error(self, operation: str, error: BaseException) -> 'ScriptedGateway':
        self._queue(operation).append(ScriptedStep(error=error))
        return self

    def calls_for(self, operation: str) -> List[GatewayCall]:
        return [call for call in self.calls if call.operation == operation]

    def pending(self, operation: str) -> int:
        return len(self._queue(operation))

    # -------------------------------------------------------------------------
    # CardVaultGateway
    # -------------------------------------------------------------------------

    async def store(self, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        default = GatewayResponse(True, 'Card stored', {'billing_id': self.default_billing_id}, test=True)
        return await self._answer('store', (card,), options, default)

    async def update(self, billing_id: str, card: CreditCard, options: Optional[Dict] = None) -> GatewayResponse:
        default = GatewayResponse(True, 'Card updated', {'billing_id': billing_id}, test=True)
        return await self._answer('update', (billing_id, card), options, default)

    async def unstore(self, billing_id: str) -> GatewayResponse:
        default = GatewayResponse(True, 'Card removed', test=True)
        return await self._answer('unstore', (billing_id,), None, default)

    async def purchase(self, amount: int, token: str, options: Optional[Dict] = None) -> GatewayResponse:
        default = GatewayResponse(
            True,
            'Purchase approved',
            {'authorized_amount': str(amount)},
            authorization=f"{self.authorization_prefix}-{next(self._authorizations)}",
            test=True,
        )
        return await self._answer('purchase', (amount, token), options, default)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _queue(self, operation: str) -> Deque[ScriptedStep]:
        if operation not in self._steps:
            raise ValueError(f"Unknown gateway operation {operation!r}")
        return self._steps[operation]

    async def _answer(
        self,
        operation: str,
        args: Tuple[Any, ...],
        options: Optional[Dict],
        default: GatewayResponse
    ) -> GatewayResponse:
        self.calls.append(GatewayCall(operation, args, dict(options or {})))
        queue = self._queue(operation)
        step = queue.popleft() if queue else ScriptedStep(response=default)

        if step.delay:
            await asyncio.sleep(step.delay)
        if step.error is not None:
            raise step.error
        return step.response or default
