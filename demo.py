#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Lending Ledger Step by Step

A walkthrough of a collateral-backed loan from whitelisting the collateral
asset to liquidation. Each step builds on the previous one. Press Enter to
advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - The empty ledger, collateral assets, the price feed
  4-6:  Origination  - Opening a loan, rejections, atomicity
  7-8:  Repayment    - Partial and full repayment, reputation
  9-10: Risk         - Price drop and liquidation, the emergency stop

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from loan_ledger import (
    LendingLedger, LoanStatus, LedgerError,
    HeightSeriesPriceFeed, publish_prices,
    calculate_collateral_ratio,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    owner: str = "admin"
    asset: str = "STX"
    start_height: int = 10

    # Loan terms
    principal: int = 1000
    collateral: int = 2000
    interest_rate: int = 500      # basis points, 5%
    duration: int = 1440          # height units

    # Collateral price path (height, price)
    price_path: tuple = ((10, 100), (20, 95), (30, 79))


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_empty_ledger():
    step_header(1, "The Empty Ledger",
        "A ledger starts with an owner, a height and nothing else.")

    print(">>> ledger = LendingLedger('tutorial', owner='admin', initial_height=0)")
    ledger = LendingLedger("tutorial", owner=CONFIG.owner, verbose=True)

    section_header("Initial State")
    print(f"Owner:          {ledger.owner}")
    print(f"Current height: {ledger.current_height}")
    print(f"Halted:         {ledger.emergency_stopped}")
    print(f"Next loan id:   {ledger.next_loan_id}")
    print(f"Risk params:    {ledger.params}")
    return ledger


def step_02_whitelist(ledger: LendingLedger):
    step_header(2, "Whitelisting Collateral",
        "Only owner-approved assets can back a loan.")

    print(f">>> ledger.add_asset('{CONFIG.owner}', '{CONFIG.asset}')")
    ledger.add_asset(CONFIG.owner, CONFIG.asset)

    section_header("Only the owner may do this")
    try:
        ledger.add_asset("mallory", "SCAM")
    except LedgerError as e:
        print(f"Caught {type(e).__name__} as expected")
    wait_for_enter()
    return ledger


def step_03_price_feed(ledger: LendingLedger):
    step_header(3, "The Price Feed",
        "Prices carry the height they were written at and expire.")

    feed = HeightSeriesPriceFeed({CONFIG.asset: list(CONFIG.price_path)})
    ledger.advance_height(CONFIG.start_height)
    publish_prices(ledger, CONFIG.owner, feed)

    entry = ledger.get_price_entry(CONFIG.asset)
    print(f"Price entry:  {entry}")
    print(f"Fresh until:  height {entry.last_updated + ledger.params.max_price_age - 1}")
    wait_for_enter()
    return ledger, feed


# ============================================================================
# PHASE 2: ORIGINATION (Steps 4-6)
# ============================================================================

def step_04_open_loan(ledger: LendingLedger):
    step_header(4, "Opening a Loan",
        "Collateral must be worth at least 200% of the principal.")

    ratio = calculate_collateral_ratio(CONFIG.collateral, CONFIG.principal)
    print(f"Collateral ratio: {ratio}%")

    loan_id = ledger.create_loan(
        "alice", CONFIG.principal, CONFIG.collateral, CONFIG.asset,
        CONFIG.interest_rate, CONFIG.duration,
    )
    loan = ledger.get_loan(loan_id)
    section_header("The Loan")
    print(loan)
    print(f"Liquidation threshold: {loan.liquidation_threshold}")
    print(f"Amount owed:           {ledger.amount_owed(loan_id)}")
    print(f"Alice's index:         {ledger.get_user_loans('alice')}")
    wait_for_enter()
    return loan_id


def step_05_rejections(ledger: LendingLedger):
    step_header(5, "Rejected Originations",
        "Every rule is checked before anything is written.")

    attempts = [
        ("too little collateral", ("bob", 1000, 1999, CONFIG.asset, 500, 1440)),
        ("unknown asset", ("bob", 1000, 2000, "BTC", 500, 1440)),
        ("rate above 50%", ("bob", 1000, 2000, CONFIG.asset, 5001, 1440)),
        ("term too short", ("bob", 1000, 2000, CONFIG.asset, 500, 10)),
    ]
    for label, args in attempts:
        try:
            ledger.create_loan(*args)
        except LedgerError as e:
            print(f"  {label:24s} -> {type(e).__name__}")
    wait_for_enter()


def step_06_atomicity(ledger: LendingLedger):
    step_header(6, "Atomicity",
        "A rejected operation leaves no trace, not even a log entry.")

    print(f"Log length:   {len(ledger.operation_log)}")
    print(f"Next loan id: {ledger.next_loan_id}")
    print(f"Bob's index:  {ledger.get_user_loans('bob')}")
    section_header("Operation Log")
    for record in ledger.operation_log:
        print(f"  #{record.sequence} h={record.height} {record.caller}: {record.operation} -> {record.result!r}")
    wait_for_enter()


# ============================================================================
# PHASE 3: REPAYMENT (Steps 7-8)
# ============================================================================

def step_07_repayment(ledger: LendingLedger):
    step_header(7, "Repaying a Loan",
        "Interest is flat; the loan closes when nothing is outstanding.")

    loan_id = ledger.create_loan("carol", 500, 1000, CONFIG.asset, 1000, 1440)
    print(f"Carol owes {ledger.amount_owed(loan_id)}")
    ledger.repay_loan("carol", loan_id, 300)
    ledger.repay_loan("carol", loan_id, ledger.amount_owed(loan_id))
    print(f"Status: {ledger.get_loan(loan_id).status.value}")
    wait_for_enter()


def step_08_reputation(ledger: LendingLedger):
    step_header(8, "Reputation",
        "Closures move the borrower's score: +10 on repayment, -20 otherwise.")

    for user in sorted(ledger.list_users()):
        print(f"  {ledger.get_reputation(user)}")
    wait_for_enter()


# ============================================================================
# PHASE 4: RISK (Steps 9-10)
# ============================================================================

def step_09_liquidation(ledger: LendingLedger, feed: HeightSeriesPriceFeed, loan_id: int):
    step_header(9, "Price Drop and Liquidation",
        "Anyone may liquidate once the fresh price is below the threshold.")

    for height, _ in CONFIG.price_path[1:]:
        ledger.advance_height(height)
        publish_prices(ledger, CONFIG.owner, feed)
        print(f"  height {height}: price {ledger.get_fresh_price(CONFIG.asset)}, "
              f"liquidatable={ledger.is_liquidatable(loan_id)}")

    ledger.liquidate_loan("keeper", loan_id)
    assert ledger.get_loan(loan_id).status is LoanStatus.LIQUIDATED
    print(f"\nAlice's reputation: {ledger.get_reputation('alice').score}")
    wait_for_enter()


def step_10_emergency_stop(ledger: LendingLedger):
    step_header(10, "Emergency Stop",
        "The owner can freeze every operation except the toggle itself.")

    ledger.toggle_emergency_stop(CONFIG.owner)
    try:
        ledger.create_loan("dave", 1000, 2000, CONFIG.asset, 500, 1440)
    except LedgerError as e:
        print(f"Caught {type(e).__name__}")
    ledger.toggle_emergency_stop(CONFIG.owner)
    print(f"Active again: {ledger.is_active()}")


def main():
    ledger = step_01_empty_ledger()
    step_02_whitelist(ledger)
    ledger, feed = step_03_price_feed(ledger)
    loan_id = step_04_open_loan(ledger)
    step_05_rejections(ledger)
    step_06_atomicity(ledger)
    step_07_repayment(ledger)
    step_08_reputation(ledger)
    step_09_liquidation(ledger, feed, loan_id)
    step_10_emergency_stop(ledger)

    print("""
    SUMMARY
      - Pure compute_* functions validate; one commit point writes
      - Prices expire; liquidation needs a fresh price below the threshold
      - Rejections leave state and log untouched

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
