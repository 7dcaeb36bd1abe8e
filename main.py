"""
RipArena: Entry Point

Connects the wallet to Arbitrum One, resolves the holder's collectibles on
Base, and runs one battle action or a watch session (open-battle poller +
status dashboard) until SIGINT/SIGTERM.

Usage:
    python main.py status
    python main.py create --collectible 7 --stake 1000000
    python main.py join --battle 12 --collectible 3
    python main.py cancel --battle 12
    python main.py watch
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.allowance import AllowanceGuard
from core.arena import ArenaState, ArenaStateMachine, Transition
from core.config import ConfigError, settings, validate_config
from core.contracts import arena_contract, token_contract
from core.dashboard import start_dashboard
from core.errors import ArenaError, PreconditionError, SettlementAmbiguous
from core.ledger import LedgerReader
from core.lifecycle import BattleLifecycle
from core.outcome import OutcomeExtractor
from core.ownership import OwnershipResolver
from core.poller import OpenBattlePoller
from core.rate_limiter import RateLimiter
from core.transactions import TransactionSender
from core.wallet import NetworkParams, SessionProfile, WalletSession, connect_rpc
from utils.alerts import alert_crash
from utils.formatting import format_tarb, parse_tarb, short_address

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10 MB
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

_LOG_FMT = "%(asctime)s.%(msecs)03d | %(name)-24s | %(levelname)-5s | %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

log = logging.getLogger("riparena")


def _setup_logging() -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    formatter = logging.Formatter(_LOG_FMT, datefmt=_LOG_DATEFMT)

    console = logging.StreamHandler(
        open(sys.stdout.fileno(), mode="w", encoding="utf-8", closefd=False)
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    file_handler = RotatingFileHandler(
        LOG_DIR / "riparena.log",
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)


@dataclass
class Session:
    wallet: WalletSession
    lifecycle: BattleLifecycle
    limiter: RateLimiter


def _arena_network() -> NetworkParams:
    cfg = settings.arena
    return NetworkParams(
        chain_id=cfg.chain_id,
        chain_name="Arbitrum One" if cfg.chain_id == 42161 else f"Chain {cfg.chain_id}",
        rpc_urls=cfg.rpc_urls,
        explorer_urls=("https://arbiscan.io",) if cfg.chain_id == 42161 else (),
    )


def _log_transition(tr: Transition) -> None:
    if tr.result is not None and tr.current == ArenaState.RESOLVED:
        log.info("ARENA  result %s (battle #%s)", tr.result.value, tr.battle_id)


async def connect_session() -> Session:
    w = settings.wallet
    runtime = settings.runtime

    limiter = RateLimiter(rate=runtime.rpc_rate_limit, burst=runtime.rpc_rate_burst)
    profile = SessionProfile(
        fid=w.fid, username=w.username, display_name=w.display_name, pfp_url=w.pfp_url,
    )
    wallet = WalletSession(private_key=w.private_key, profile=profile)
    if w.address and w.address.lower() != wallet.address.lower():
        raise ConfigError(
            f"WALLET_ADDRESS {w.address} does not match the private key ({wallet.address})"
        )
    address = wallet.request_accounts()[0]

    # No networks are registered up front, so the first connect goes through add_network.
    await wallet.ensure_network(_arena_network())

    arena = arena_contract(wallet.w3, settings.arena.contract)
    token = token_contract(wallet.w3, settings.arena.token)
    reader = LedgerReader(arena, token, limiter=limiter)
    sender = TransactionSender(wallet, timeout=settings.arena.tx_timeout, limiter=limiter)

    loop = asyncio.get_running_loop()
    home_w3 = await loop.run_in_executor(None, connect_rpc, settings.collectible.rpc_urls)
    ownership = OwnershipResolver(
        home_w3,
        settings.collectible.contract,
        origin_block=settings.collectible.origin_block,
        chunk_size=settings.collectible.log_chunk_size,
        limiter=limiter,
    )

    state = ArenaStateMachine()
    state.subscribe(_log_transition)

    lifecycle = BattleLifecycle(
        me=address,
        contract=arena,
        reader=reader,
        sender=sender,
        guard=AllowanceGuard(reader, token, sender),
        ownership=ownership,
        outcomes=OutcomeExtractor(arena, address),
        arena=state,
    )
    log.info("Connected as %s (%s)", profile.label(address), address)

    try:
        await lifecycle.refresh_ownership()
    except ArenaError as exc:
        log.error("Collectible detection failed: %s", exc)
    await lifecycle.refresh("CONNECT")
    return Session(wallet=wallet, lifecycle=lifecycle, limiter=limiter)


def _print_status(lc: BattleLifecycle) -> None:
    s = lc.player_stats
    print(f"Wallet:        {lc.me}")
    print(f"$TARB balance: {format_tarb(s.balance)}")
    print(f"Total battles: {s.total_battles}")
    print(f"Your record:   {s.wins}W / {s.losses}L | won {format_tarb(s.earnings)} $TARB")
    ids = ", ".join(f"#{i}" for i in lc.collectibles) or "none found"
    print(f"Collectibles:  {ids}")
    print(f"Open battles:  {len(lc.open_battles)}")
    for b in lc.open_battles:
        tag = "yours" if b.created_by(lc.me) else "joinable"
        print(
            f"  #{b.battle_id:<5d} collectible #{b.creator_collectible_id:<5d} "
            f"{format_tarb(b.stake):>8s} $TARB  {short_address(b.creator)}  [{tag}]"
        )


async def _watch(session: Session) -> None:
    lc = session.lifecycle
    poller = OpenBattlePoller(lc, interval=settings.arena.poll_interval)
    runner = await start_dashboard(
        lc,
        session.wallet.profile,
        poller,
        port=settings.runtime.dashboard_port,
        limiter=session.limiter,
    )
    stop = asyncio.Event()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

    poller.start()
    try:
        await stop.wait()
    finally:
        log.info("Shutdown signal received, stopping poller...")
        await poller.stop()
        await runner.cleanup()


async def run(args: argparse.Namespace) -> int:
    config_errors = validate_config(settings)
    if config_errors:
        for err in config_errors:
            log.error("CONFIG  %s", err)
        raise ConfigError(
            f"{len(config_errors)} configuration error(s): fix .env and restart"
        )

    lc: BattleLifecycle | None = None
    try:
        session = await connect_session()
        lc = session.lifecycle
        if args.command == "status":
            _print_status(lc)
        elif args.command == "create":
            collectible = args.collectible if args.collectible is not None else (
                lc.collectibles[0] if lc.collectibles else None
            )
            if collectible is None:
                raise PreconditionError("No collectible found for this wallet")
            try:
                stake = parse_tarb(args.stake)
            except ValueError as exc:
                raise PreconditionError(str(exc)) from exc
            await lc.create(collectible, stake)
            print("Battle created! Waiting for challenger...")
        elif args.command == "join":
            outcome = await lc.join(args.battle, args.collectible)
            if outcome.won:
                print(f"VICTORY! You won {format_tarb(outcome.prize)} $TARB!")
            else:
                print("DEFEAT! Better luck next time...")
            lc.arena.acknowledge()
        elif args.command == "cancel":
            await lc.cancel(args.battle)
            print(f"Battle #{args.battle} cancelled.")
        elif args.command == "watch":
            await _watch(session)
    except SettlementAmbiguous as exc:
        log.error("%s", exc)
        print("Battle joined but the result could not be read; check the explorer.")
        return 2
    except ArenaError as exc:
        log.error("%s failed: %s", args.command.upper(), exc)
        if lc is not None and lc.arena.state == ArenaState.AWAITING_SELECTION:
            lc.arena.clear()
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="riparena", description="Protardio battle arena client")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="show balance, record, collectibles and open battles")

    create = sub.add_parser("create", help="open a battle")
    create.add_argument("--collectible", type=int, default=None)
    create.add_argument("--stake", default=settings.arena.default_stake,
                        help="stake in whole $TARB (default: %(default)s)")

    join = sub.add_parser("join", help="join an open battle")
    join.add_argument("--battle", type=int, required=True)
    join.add_argument("--collectible", type=int, required=True)

    cancel = sub.add_parser("cancel", help="cancel your open battle")
    cancel.add_argument("--battle", type=int, required=True)

    sub.add_parser("watch", help="poll open battles and serve the status dashboard")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging()
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        log.info("RipArena stopped by user.")
        return 130
    except ConfigError as exc:
        log.critical("%s", exc)
        return 1
    except Exception as exc:
        log.critical("Fatal error: %s", exc)
        asyncio.run(alert_crash(str(exc)))
        raise


if __name__ == "__main__":
    sys.exit(main())
