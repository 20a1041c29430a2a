import argparse
import json
import os
import time
from collections import deque
from pathlib import Path
from rich.live import Live
from rich.table import Table
from rich.layout import Layout
from rich.panel import Panel
from rich.console import Console
from rich import box
from datetime import datetime

from pump_sniper.core.overrides import OverrideKind, append_command

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
SNAPSHOT_PATH = Path(os.getenv("STATUS_SNAPSHOT_PATH", str(LOG_DIR / "status.json")))
LOG_FILE = LOG_DIR / "bot.log"
COMMAND_FILE = Path(os.getenv("COMMAND_FILE", "dashboard_commands.json"))
OVERRIDES = [kind.value for kind in OverrideKind]
LOG_LINES = 25


def send_command(command_type):
    """Append an override for the running bot to pick up."""
    append_command(str(COMMAND_FILE), command_type)
    print(f"Queued {command_type} in {COMMAND_FILE}")


def get_position_table(position):
    table = Table(box=box.ROUNDED, expand=True)
    table.add_column("Symbol", style="cyan", no_wrap=True)
    table.add_column("State", style="magenta")
    table.add_column("Entry MC", justify="right")
    table.add_column("Current MC", justify="right")
    table.add_column("Change %", justify="right")
    table.add_column("Bonding", justify="right")
    table.add_column("Milestone MC", justify="right")
    table.add_column("Time left", justify="right")
    table.add_column("Sells", justify="right")

    if not position:
        table.add_row("-", "-", "-", "-", "-", "-", "-", "-", "-")
        return table

    change = position.get("change_pct", 0.0)
    if change > 0:
        change_str = f"[green]+{change:.1f}%[/green]"
    elif change <= -10:
        change_str = f"[bold red]{change:.1f}%[/bold red]"
    else:
        change_str = f"[red]{change:.1f}%[/red]"

    table.add_row(
        position.get("symbol", "???"),
        position.get("state", "???"),
        f"${position.get('entry_market_cap', 0):,.0f}",
        f"${position.get('last_market_cap', 0):,.0f}",
        change_str,
        f"{position.get('last_bonding_curve', 0):.1f}%",
        f"${position.get('last_milestone_market_cap', 0):,.0f}",
        f"{position.get('time_remaining_sec', 0):.0f}s",
        str(position.get("sells", 0)),
    )
    return table


def get_account_text(account):
    if not account:
        return "Waiting for account info..."
    lines = [
        f"Account address: {account.get('address', '?')}",
        f"Account balance: {account.get('sol_balance', 0):.4f} SOL",
    ]
    for mint, amount in (account.get("holdings") or {}).items():
        lines.append(f"Mint: {mint}, Amount: {amount:,.2f} SPL")
    return "\n".join(lines)


def tail_log(path, lines=LOG_LINES):
    if not path.exists():
        return "No log yet"
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return "".join(deque(f, maxlen=lines))


def make_layout():
    layout = Layout()
    layout.split(
        Layout(name="header", size=3),
        Layout(name="position", size=6),
        Layout(name="log"),
        Layout(name="account", size=6),
        Layout(name="footer", size=3)
    )
    return layout


def main():
    console = Console()
    layout = make_layout()

    layout["header"].update(Panel("PUMP SNIPER - LIVE MONITOR", style="bold white on blue"))
    layout["footer"].update(Panel(
        "Overrides: python monitor.py --send RESET_TIMER | CONTINUE | SELL_NOW    Ctrl+C to exit",
        title="Menu", style="white",
    ))

    with Live(layout, console=console, refresh_per_second=1, screen=True):
        while True:
            try:
                trading = False
                if SNAPSHOT_PATH.exists():
                    try:
                        text = SNAPSHOT_PATH.read_text(encoding='utf-8')
                        if text.strip():
                            data = json.loads(text)
                            ts = data.get("ts", 0)
                            lag = time.time() - ts
                            trading = data.get("mode") == "MONITORING"

                            status = f"Mode: {'TRADING' if trading else 'SEARCHING'}"
                            status += f" | Last Update: {datetime.fromtimestamp(ts).strftime('%H:%M:%S')} (Lag: {lag:.1f}s)"
                            if data.get("cooldown_active"):
                                status += " | cooldown"
                            header_style = "bold yellow on red" if trading else "bold white on blue"

                            layout["header"].update(Panel(f"PUMP SNIPER | {status}", style=header_style))
                            layout["position"].update(Panel(
                                get_position_table(data.get("position")), title="Active Position",
                                border_style="red" if trading else "blue",
                            ))
                            layout["account"].update(Panel(
                                get_account_text(data.get("account")), title="Account Info",
                                border_style="red" if trading else "blue",
                                style="yellow" if trading else "green",
                            ))
                    except json.JSONDecodeError:
                        pass # writing
                else:
                    layout["position"].update(Panel("Waiting for bot data...", title="Status", border_style="yellow"))

                layout["log"].update(Panel(
                    tail_log(LOG_FILE), title="Trading Bot Log",
                    style="yellow" if trading else "green",
                ))
                time.sleep(1)
            except KeyboardInterrupt:
                break


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Live dashboard for the pump sniper bot.")
    parser.add_argument("--send", choices=OVERRIDES, help="Queue an override for the running bot and exit.")
    args = parser.parse_args()
    if args.send:
        send_command(args.send)
    else:
        main()
