"""
Unit Tests for the Vault

Tests cover:
1. Deposit locks the prevailing global rate
2. Redemption round trip and the full-balance amount
3. Atomic rollback when the payout fails
4. Rollback does not discard work from other threads
"""

import threading

import pytest

from rebase_token.fixed_point import PRECISION_FACTOR
from rebase_token.models import Amount, EventType
from rebase_token.service import LedgerService, Unauthorized, InsufficientBalance, PayoutFailed
from rebase_token.vault import BaseAssetReserve, VaultService


# Test constants
OWNER = "owner"
ALICE = "alice"
BOB = "bob"

RATE = 5 * 10**10
LOWER_RATE = 4 * 10**10
ONE_TOKEN = 10**18


class RefusingTransport:
    def __init__(self):
        self.received = 0

    def receive(self, payer: str, amount: int) -> None:
        self.received += amount

    def release(self, recipient: str, amount: int) -> bool:
        return False


class GatedTransport:
    """Refuses every payout, but only once the test opens the gate."""

    def __init__(self):
        self.held = 0
        self.entered = threading.Event()
        self.gate = threading.Event()

    def receive(self, payer: str, amount: int) -> None:
        self.held += amount

    def release(self, recipient: str, amount: int) -> bool:
        self.entered.set()
        self.gate.wait(timeout=5)
        return False


class TestDeposit:
    """Tests for the deposit flow."""

    def test_deposit_issues_at_global_rate(self, vault, ledger):
        receipt = vault.deposit(ALICE, 10**5)

        assert receipt.payer == ALICE
        assert receipt.amount == 10**5
        assert receipt.locked_rate == RATE
        assert receipt.balance_after == 10**5
        assert ledger.current_balance(ALICE) == 10**5
        assert vault.reserve.held == 10**5

    def test_deposit_records_event(self, vault, ledger):
        vault.deposit(ALICE, 500)

        event = ledger.store.events[-1]
        assert event.event_type == EventType.DEPOSITED
        assert event.account == ALICE
        assert event.amount == 500

    def test_lowered_rate_applies_to_new_depositors_only(self, vault, ledger):
        vault.deposit(ALICE, 1000)
        ledger.set_global_rate(OWNER, LOWER_RATE)

        receipt = vault.deposit(BOB, 1000)
        vault.deposit(ALICE, 1000)

        assert receipt.locked_rate == LOWER_RATE
        assert ledger.interest_rate_of(ALICE) == RATE
        assert ledger.interest_rate_of(BOB) == LOWER_RATE

    def test_vault_without_role_cannot_deposit(self, clock):
        ledger = LedgerService(OWNER, RATE, clock=clock)
        vault = VaultService(ledger)

        with pytest.raises(Unauthorized):
            vault.deposit(ALICE, 100)

        assert vault.reserve.held == 0

    def test_ledger_address(self, vault, ledger):
        assert vault.ledger_address == ledger.address
        assert vault.address == "vault"


class TestRedeem:
    """Tests for the redeem flow."""

    def test_round_trip_returns_deposit(self, vault, ledger):
        vault.deposit(ALICE, 10**5)

        receipt = vault.redeem(ALICE, Amount.all())

        assert receipt.amount == 10**5
        assert receipt.balance_after == 0
        assert ledger.current_balance(ALICE) == 0
        assert vault.reserve.paid_out[ALICE] == 10**5

    def test_partial_redeem(self, vault, ledger):
        vault.deposit(ALICE, 1000)

        receipt = vault.redeem(ALICE, 400)

        assert receipt.amount == 400
        assert ledger.current_balance(ALICE) == 600
        assert vault.reserve.held == 600

    def test_redeem_more_than_balance(self, vault, ledger):
        vault.deposit(ALICE, 1000)

        with pytest.raises(InsufficientBalance):
            vault.redeem(ALICE, 1001)

        assert vault.reserve.held == 1000

    def test_interest_needs_funded_reserve(self, vault, ledger, clock):
        vault.deposit(ALICE, ONE_TOKEN)
        clock.advance(100)
        owed = ledger.current_balance(ALICE)
        earned = ONE_TOKEN * RATE * 100 // PRECISION_FACTOR
        assert owed == ONE_TOKEN + earned

        with pytest.raises(PayoutFailed):
            vault.redeem(ALICE, Amount.all())

        # the burn is rolled back with the failed payout
        assert ledger.principal_balance(ALICE) == ONE_TOKEN
        assert ledger.store.get(ALICE).last_settled == 0
        assert ledger.current_balance(ALICE) == owed

        vault.fund(OWNER, earned)
        receipt = vault.redeem(ALICE, Amount.all())

        assert receipt.amount == owed
        assert vault.reserve.held == 0
        assert ledger.current_balance(ALICE) == 0

    def test_refusing_transport_keeps_claims(self, clock):
        ledger = LedgerService(OWNER, RATE, clock=clock)
        vault = VaultService(ledger, reserve=RefusingTransport(), address="vault-2")
        ledger.grant_mint_burn_role(OWNER, vault.address)
        vault.deposit(ALICE, 700)

        with pytest.raises(PayoutFailed):
            vault.redeem(ALICE, 300)

        assert ledger.current_balance(ALICE) == 700
        assert vault.reserve.received == 700
        assert not any(e.event_type == EventType.REDEEMED for e in ledger.store.events)

    def test_fund_grows_reserve(self, vault, ledger):
        held = vault.fund(BOB, 50)

        assert held == 50
        assert ledger.current_balance(BOB) == 0
        assert ledger.store.events[-1].event_type == EventType.FUNDED


class TestBaseAssetReserve:
    """Tests for the in-process reserve."""

    def test_release_beyond_holdings_fails(self):
        reserve = BaseAssetReserve(held=10)

        assert reserve.release(ALICE, 11) is False
        assert reserve.held == 10
        assert reserve.release(ALICE, 10) is True
        assert reserve.paid_out == {ALICE: 10}


class TestConcurrency:
    """Tests for requests served from several threads."""

    def test_failed_redeem_keeps_concurrent_deposit(self, clock):
        ledger = LedgerService(OWNER, RATE, clock=clock)
        transport = GatedTransport()
        vault = VaultService(ledger, reserve=transport, address="vault-2")
        ledger.grant_mint_burn_role(OWNER, vault.address)
        vault.deposit(ALICE, 100)
        failures = []

        def redeem():
            try:
                vault.redeem(ALICE, 50)
            except PayoutFailed as e:
                failures.append(e)

        redeemer = threading.Thread(target=redeem)
        depositor = threading.Thread(target=vault.deposit, args=(BOB, 1000))
        redeemer.start()
        assert transport.entered.wait(timeout=5)

        depositor.start()
        depositor.join(timeout=0.2)
        assert depositor.is_alive()

        transport.gate.set()
        redeemer.join(timeout=5)
        depositor.join(timeout=5)

        assert len(failures) == 1
        assert ledger.principal_balance(ALICE) == 100
        assert ledger.principal_balance(BOB) == 1000
        assert transport.held == 1100
        assert sum(e.event_type == EventType.DEPOSITED for e in ledger.store.events) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
