import enum
import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from db import get_session, session_scope
from services.accountservice import AccountService
from services.credentialservice import CredentialService
from services.currencyservice import CurrencyService
from utilities.exceptions import (
    CompensationFailure, ExternalApiError, ExternalNotFoundError, InsufficientBalanceError, LedgerError,
    PersistenceError, ValidationError
)
from utilities.tools import to_amount
from wrapper.unbelievaboat.boatclient import BoatClient

logger = logging.getLogger(__name__)


class WireDirection(enum.Enum):
    IN = "in"
    OUT = "out"


class SagaState(enum.Enum):
    PENDING = "pending"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    COMPENSATING = "compensating"
    COMPENSATED = "compensated"
    COMPENSATION_FAILED = "compensation_failed"


@dataclass(frozen=True)
class WireResult:
    direction: WireDirection
    ticker: str
    amount: Decimal
    local_balance: Decimal
    external_balance: int


class WireSaga:
    """
    Local half of a wire transfer.

    ``apply`` commits the local step, ``confirm`` marks the external step as
    done and ``compensate`` reverses the delta ``apply`` committed. Other
    changes that land on the account in between are kept. A compensated saga
    ignores further ``compensate`` calls, so the reversal is applied once.
    """

    def __init__(self, direction: WireDirection):
        self.direction = direction
        self.state = SagaState.PENDING
        self.account_id = None
        self.original_balance = None
        self.new_balance = None
        self.delta = None

    def __repr__(self):
        return (f"<WireSaga(direction={self.direction.value}, state={self.state.value}, "
                f"account_id={self.account_id}, original={self.original_balance}, new={self.new_balance})>")

    async def apply(self, owner_id: int, currency_id: int, amount: Decimal):
        if self.state is not SagaState.PENDING:
            raise RuntimeError(f"Cannot apply a saga in state {self.state.value}")

        async with session_scope() as session:
            if self.direction is WireDirection.IN:
                account_id = await AccountService.get_or_create_account(owner_id, currency_id, session)
                delta = amount
            else:
                account = await AccountService.get_account(owner_id, currency_id, session)
                if not account:
                    raise InsufficientBalanceError("Insufficient balance")
                account_id = account.account_id
                delta = -amount

            original = await AccountService.get_balance_by_account_id(account_id, session)
            await AccountService.adjust(account_id, delta, session)

        self.account_id = account_id
        self.original_balance = original
        self.new_balance = original + delta
        self.delta = delta
        self.state = SagaState.APPLIED

    def confirm(self):
        if self.state is not SagaState.APPLIED:
            raise RuntimeError(f"Cannot confirm a saga in state {self.state.value}")
        self.state = SagaState.CONFIRMED

    async def compensate(self):
        if self.state is SagaState.COMPENSATED:
            return
        if self.state not in (SagaState.APPLIED, SagaState.COMPENSATING, SagaState.COMPENSATION_FAILED):
            raise RuntimeError(f"Cannot compensate a saga in state {self.state.value}")

        self.state = SagaState.COMPENSATING
        try:
            async with session_scope() as session:
                await AccountService.adjust(self.account_id, -self.delta, session)
        except LedgerError as e:
            self.state = SagaState.COMPENSATION_FAILED
            logger.critical(
                "RECONCILIATION REQUIRED: wire %s compensation failed for account %s, "
                "apply %s to the balance by hand: %s",
                self.direction.value, self.account_id, -self.delta, e
            )
            raise CompensationFailure(
                "The external transfer failed and the local balance could not be restored. "
                "An administrator has to reconcile this account.",
                account_id=self.account_id,
                restore_delta=-self.delta,
            ) from e

        self.state = SagaState.COMPENSATED
        logger.error("Wire %s compensated: reversed %s on account %s",
                     self.direction.value, self.delta, self.account_id)


def _whole_amount(amount) -> Decimal:
    amount = to_amount(amount)
    if amount != amount.to_integral_value():
        raise ValidationError("Amount must be a whole number")
    return amount


class WireTransferService:

    @staticmethod
    async def _prepare(amount, ticker: str):
        amount = _whole_amount(amount)
        currency = await CurrencyService.require_by_ticker(ticker)
        token = await CredentialService.get_token(currency.currency_id)
        return amount, currency, BoatClient(token)

    @staticmethod
    async def _run_external(saga: WireSaga, client: BoatClient, guild_id: int, owner_id: int, amount: int):
        """
        Move ``amount`` on the external side, compensating the local step if that fails.
        """
        try:
            external = await client.get_balance(guild_id, owner_id)
            if saga.direction is WireDirection.IN:
                new_bank = external.bank - amount
            else:
                new_bank = external.bank + amount
            updated = await client.set_balance(guild_id, owner_id, bank=new_bank)
        except ExternalApiError as e:
            logger.warning("UnbelievaBoat call failed during wire %s for %s: %s",
                           saga.direction.value, owner_id, e.message)
            await saga.compensate()
            e.message = f"Local balance restored. UnbelievaBoat request failed: {e.message}"
            e.args = (e.message,)
            raise

        saga.confirm()
        return updated

    @staticmethod
    async def wire_in(owner_id: int, amount, ticker: str) -> WireResult:
        """
        Move funds from the owner's UnbelievaBoat bank into their ledger account.

        The ledger is credited first and UnbelievaBoat is debited afterwards.
        If UnbelievaBoat fails the credit is reversed before the error is raised.

        :param owner_id: The user moving funds.
        :param amount: Whole number of units to move.
        :param ticker: The currency bound to the guild's UnbelievaBoat.
        :return: The new local and external balances.
        """
        amount, currency, client = await WireTransferService._prepare(amount, ticker)
        external_amount = int(amount)

        try:
            external = await client.get_balance(currency.guild_id, owner_id)
            external_bank = external.bank
        except ExternalNotFoundError:
            external_bank = 0
        if external_bank < external_amount:
            raise InsufficientBalanceError("Insufficient funds in UnbelievaBoat")

        saga = WireSaga(WireDirection.IN)
        await saga.apply(owner_id, currency.currency_id, amount)
        updated = await WireTransferService._run_external(saga, client, currency.guild_id, owner_id, external_amount)

        logger.info("Wire in: %s moved %s %s from UnbelievaBoat", owner_id, amount, currency.ticker)
        return WireResult(WireDirection.IN, currency.ticker, amount, saga.new_balance, updated.bank)

    @staticmethod
    async def wire_out(owner_id: int, amount, ticker: str) -> WireResult:
        """
        Move funds from the owner's ledger account into their UnbelievaBoat bank.
        """
        amount, currency, client = await WireTransferService._prepare(amount, ticker)

        # Read only, the session is discarded without committing
        try:
            async with get_session() as session:
                account = await AccountService.get_account(owner_id, currency.currency_id, session)
                balance = Decimal(account.balance) if account else Decimal(0)
                await session.rollback()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read the balance: {e}") from e
        if balance < amount:
            raise InsufficientBalanceError("Insufficient balance")

        saga = WireSaga(WireDirection.OUT)
        await saga.apply(owner_id, currency.currency_id, amount)
        updated = await WireTransferService._run_external(saga, client, currency.guild_id, owner_id, int(amount))

        logger.info("Wire out: %s moved %s %s to UnbelievaBoat", owner_id, amount, currency.ticker)
        return WireResult(WireDirection.OUT, currency.ticker, amount, saga.new_balance, updated.bank)
