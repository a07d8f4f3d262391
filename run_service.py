#!/usr/bin/env python3
"""
Quorum service runner.

Two modes:
  - default: run the periodic expiry sweeper against an in-memory ledger
    until interrupted, plus the REST API when it is enabled (api.enabled,
    --host/--port or QUORUM_API_PORT)
  - --demo:  walk through a 2-of-3 multi-signature scheduled transfer and
    print each step

Usage:
    python run_service.py --operator-id 0.0.2 --operator-key <hex> --port 8080
    python run_service.py --demo

Environment variables (alternative to flags):
    QUORUM_OPERATOR_ID, QUORUM_OPERATOR_KEY, QUORUM_ADMIN_KEY, QUORUM_API_PORT
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import sys
from datetime import datetime

# ---------------------------------------------------------------------------
# Ensure the project root is in sys.path so imports work before pip install
# ---------------------------------------------------------------------------
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from quorum_core.api import ScheduleAPI  # noqa: E402
from quorum_core.config import QuorumConfig, load_config  # noqa: E402
from quorum_core.gateway import InMemoryLedgerGateway  # noqa: E402
from quorum_core.key_set import KeySet  # noqa: E402
from quorum_core.keys import KeyPair, generate_keys  # noqa: E402
from quorum_core.logging_config import configure_logging  # noqa: E402
from quorum_core.registry import ScheduleRegistry  # noqa: E402
from quorum_core.schedule import ScheduleSnapshot, signing_message  # noqa: E402
from quorum_core.sweeper import ExpirySweeper  # noqa: E402
from quorum_core.transfer import TransferPayload, coins_to_units  # noqa: E402

logger = logging.getLogger("quorum")

DEMO_MEMO = "Scheduled TX With Multi Signature Account"


# ===================================================================
#  Demo walkthrough
# ===================================================================

def _print_balance(gateway: InMemoryLedgerGateway, account_id: str) -> None:
    print(f"\nBalance of {account_id}: {gateway.get_balance(account_id)} units.")


def _print_schedule(snap: ScheduleSnapshot) -> None:
    print("\n\nScheduled Transaction Info -")
    print(f"ScheduleId : {snap.schedule_id}")
    print(f"Memo : {snap.memo}")
    print(f"Created by : {snap.creator}")
    print(f"Payed by : {snap.payer}")
    print(f"Expiration time : {datetime.fromtimestamp(snap.expiration_time)}")
    print(f"Signatures : {snap.signature_count}/{snap.threshold}")
    if snap.executed_at is None:
        print("The transaction has not been executed yet.")
    else:
        print(f"Time of execution : {datetime.fromtimestamp(snap.executed_at)}")


def run_demo(cfg: QuorumConfig) -> None:
    gateway = InMemoryLedgerGateway(cfg.network)
    registry = ScheduleRegistry(gateway, cfg.schedule)

    keys = generate_keys(3)
    for i, kp in enumerate(keys, 1):
        print(f"\nGenerated Key Pair {i}")
        print(f"Public Key: {kp.public_key}")

    key_set = KeySet([kp.public_key for kp in keys], 2)
    multisig_id = gateway.create_account(key_set, coins_to_units("1000"))
    receiver_id = gateway.create_account(None, 0)
    print(f"\nThe Multi Signature Account ID is: {multisig_id}")

    _print_balance(gateway, multisig_id)
    _print_balance(gateway, receiver_id)

    payload = TransferPayload.between(multisig_id, receiver_id, coins_to_units("10"))

    admin = (KeyPair.from_hex(cfg.schedule.admin_key)
             if cfg.schedule.admin_key else KeyPair.generate())
    schedule_id = registry.create(
        payload,
        key_set,
        creator=gateway.operator_id,
        payer=gateway.operator_id,
        admin_authority=admin.public_key,
        memo=DEMO_MEMO,
    )
    _print_schedule(registry.query(schedule_id))

    for kp in keys[:2]:
        print("\nAdding signature to scheduled transaction")
        result = registry.sign_with_signature(
            schedule_id, kp.public_key, kp.sign(signing_message(schedule_id)),
        )
        print(f"The sign transaction status is {result.state.value.upper()}")

    _print_schedule(registry.query(schedule_id))
    _print_balance(gateway, multisig_id)
    _print_balance(gateway, receiver_id)


# ===================================================================
#  Service mode
# ===================================================================

async def run_service(cfg: QuorumConfig) -> None:
    gateway = InMemoryLedgerGateway(cfg.network)
    registry = ScheduleRegistry(gateway, cfg.schedule)
    sweeper = ExpirySweeper(registry, cfg.schedule.sweep_interval_seconds)

    api: ScheduleAPI | None = None
    if cfg.api.enabled:
        api = ScheduleAPI(registry, cfg.api.host, cfg.api.port, api_config=cfg.api)
        await api.start()
        if not cfg.api.api_key:
            logger.warning("API key not set: POST endpoints are unauthenticated")
    else:
        logger.info("API disabled; running the expiry sweeper only")
    sweeper.start()
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await sweeper.stop()
        if api is not None:
            await api.stop()


# ===================================================================
#  Main entry point
# ===================================================================

def parse_args(argv: list[str] | None = None):
    p = argparse.ArgumentParser(description="Quorum scheduled-transaction service")
    p.add_argument("--config", default=None, help="Path to quorum.toml config file")
    p.add_argument("--demo", action="store_true",
                   help="Run the multi-signature walkthrough and exit")
    p.add_argument("--operator-id", default=None, help="Operator account id")
    p.add_argument("--operator-key", default=None, help="Operator private key (hex)")
    p.add_argument("--host", default=None, help="API listen host")
    p.add_argument("--port", type=int, default=None, help="API listen port")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    return p.parse_args(argv)


def build_config(args) -> QuorumConfig:
    cfg = load_config(args.config)
    # CLI flags override config
    if args.operator_id:
        cfg.network.operator_id = args.operator_id
    if args.operator_key:
        cfg.network.operator_key = args.operator_key
    if args.host:
        cfg.api.host = args.host
        cfg.api.enabled = True
    if args.port:
        cfg.api.port = args.port
        cfg.api.enabled = True
    if args.log_level:
        cfg.logging.level = args.log_level.upper()
    if args.demo and not cfg.network.operator_id:
        # demo ledger gets a throwaway operator
        cfg.network.operator_id = "0.0.2"
        cfg.network.operator_key = KeyPair.generate().private_hex
    return cfg


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    cfg = build_config(args)
    configure_logging(cfg.logging)
    if args.demo:
        run_demo(cfg)
        return 0
    asyncio.run(run_service(cfg))
    return 0


def main_sync():
    """Synchronous entry point for console_scripts."""
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(main())


if __name__ == "__main__":
    main_sync()
