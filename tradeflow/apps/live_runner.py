#!/usr/bin/env python3
"""
Live Trade Flow Runner

Connects to the trade bridge websocket, runs the dominance, transition and
pulse analyzers on every tick and prints what they emit.

Usage:
    tradeflow-live                                  # ws://localhost:8080
    tradeflow-live --url ws://10.211.55.5:8080
    tradeflow-live --quiet                          # transitions only
    tradeflow-live --no-pulse --metrics

Tunables can be overridden from the environment, e.g.
TRADEFLOW_DOMINANCE__ENTER_DOMINANCE=0.75 TRADEFLOW_PULSE__MAX_RATE=20
"""

import argparse
import asyncio
import logging
from datetime import datetime
from typing import Optional

from tradeflow.display.colors import Colors, side_color, transition_color
from tradeflow.engine import (
    EngineConfig,
    FlowEvent,
    Side,
    TradeFlowEngine,
    TradeFlowStream,
    TransitionEvent,
    merge_config,
)
from tradeflow.engine.ingestion import DEFAULT_URL
from tradeflow.logging_config import log_exception, setup_logging

logger = logging.getLogger(__name__)


def _clock(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S.%f")[:-3]


class LiveDisplay:
    """Console output for engine events."""

    def __init__(self, quiet: bool = False, show_pulses: bool = False):
        self.quiet = quiet
        self.show_pulses = show_pulses
        self._last_flow_side: Optional[Side] = None

    def print_header(self, url: str) -> None:
        print()
        print(f"{Colors.BOLD}{Colors.CYAN}{'═' * 60}{Colors.RESET}")
        print(f"{Colors.BOLD}{Colors.CYAN}  TRADE FLOW  {Colors.RESET}{Colors.DIM}{url}{Colors.RESET}")
        print(f"{Colors.BOLD}{Colors.CYAN}{'═' * 60}{Colors.RESET}")
        print(f"{Colors.DIM}ticks → dominance | transitions | pulse{Colors.RESET}\n")

    def print_flow(self, event: FlowEvent) -> None:
        """Print dominance changes; repeated same-side events are collapsed."""
        if self.quiet or event.side is self._last_flow_side:
            return
        self._last_flow_side = event.side

        color = side_color(event.side)
        print(
            f"{Colors.DIM}[{_clock(event.timestamp)}]{Colors.RESET} "
            f"{color}FLOW {event.side.value:4}{Colors.RESET} "
            f"strength={event.strength:.2f} "
            f"tps={event.trades_per_sec:.1f} vps={event.vol_per_sec:.1f}"
        )

    def print_transition(self, event: TransitionEvent) -> None:
        color = transition_color(event.transition_type)
        extra = ""
        if event.trend_direction:
            extra = f" trend={event.trend_direction}"
        elif event.total_vol is not None:
            extra = f" vol={event.total_vol:.0f}"

        print(
            f"{Colors.DIM}[{_clock(event.timestamp)}]{Colors.RESET} "
            f"{Colors.BOLD}{color}{event.transition_type.value}{Colors.RESET} "
            f"imb={event.imbalance:+.2f} vel={event.velocity:.1f}{extra}"
        )

    def print_pulse(self, side: Side, pseudo_volume: float, duration_s: float) -> None:
        if not self.show_pulses:
            return
        print(f"{side_color(side)}•{Colors.RESET}", end="", flush=True)

    def print_metrics(self, engine: TradeFlowEngine, stream: TradeFlowStream) -> None:
        summary = engine.metrics.get_summary()
        ticks = summary["ticks"]
        events = summary["events"]
        latency = summary["ingest_latency_ms"]
        stats = stream.stats

        print(f"\n{Colors.CYAN}{'─' * 60}{Colors.RESET}")
        print(
            f"  Ticks/sec: {ticks['per_second']}  accepted={ticks['accepted']:,} "
            f"dropped={ticks['dropped']:,} out-of-order={ticks['out_of_order']:,}"
        )
        print(
            f"  Events: flow={events['flow']:,} transition={events['transition']:,} "
            f"pulses={events['pulses']:,}"
        )
        print(f"  Ingest latency (ms): mean={latency['mean']} p95={latency['p95']} max={latency['max']}")
        print(
            f"  Stream: {stream.state.value} reconnects={stats.reconnect_count} "
            f"errors={stats.error_count}"
        )
        print(f"{Colors.CYAN}{'─' * 60}{Colors.RESET}")


async def run_live(
    url: str,
    config: EngineConfig,
    quiet: bool = False,
    show_pulses: bool = False,
    metrics_interval: Optional[float] = None,
) -> None:
    """Stream ticks into an engine until cancelled."""
    display = LiveDisplay(quiet=quiet, show_pulses=show_pulses)
    display.print_header(url)

    engine = TradeFlowEngine(config)
    engine.on_flow(display.print_flow)
    engine.on_transition(display.print_transition)
    engine.on_pulse(display.print_pulse)

    stream = TradeFlowStream(url, on_tick=engine.ingest)
    logger.info(
        f"Analyzers: dominance={config.enable_dominance} "
        f"transition={config.enable_transition} pulse={config.enable_pulse}"
    )

    try:
        async with engine:
            await stream.start()
            while True:
                await asyncio.sleep(metrics_interval or 3600)
                if metrics_interval:
                    display.print_metrics(engine, stream)
    finally:
        await stream.stop()
        if metrics_interval:
            display.print_metrics(engine, stream)
        print(f"\n{Colors.YELLOW}Shutting down...{Colors.RESET}")


def main():
    parser = argparse.ArgumentParser(description="Live order-flow analysis from the trade bridge")
    parser.add_argument("--url", default=DEFAULT_URL, help=f"Bridge websocket URL (default: {DEFAULT_URL})")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only print transitions")
    parser.add_argument("--pulses", "-p", action="store_true", help="Print a dot per pulse fire")
    parser.add_argument("--no-pulse", action="store_true", help="Disable the pulse scheduler")
    parser.add_argument(
        "--metrics",
        "-m",
        type=float,
        nargs="?",
        const=10.0,
        default=None,
        help="Print engine metrics every N seconds (default: 10)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")

    args = parser.parse_args()

    setup_logging(level=args.log_level)

    config = EngineConfig.from_env()
    if args.no_pulse:
        config = merge_config(config, {"enable_pulse": False})

    try:
        asyncio.run(
            run_live(
                args.url,
                config,
                quiet=args.quiet,
                show_pulses=args.pulses,
                metrics_interval=args.metrics,
            )
        )
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log_exception(logger, e, "Live runner stopped")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
