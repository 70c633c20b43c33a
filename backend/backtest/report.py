"""Report formatting for replay results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

import orjson

from core.simulator import SimulationResult


class ReportFormatter:
    """Format replay results for display and export."""

    @staticmethod
    def print_console(result: SimulationResult, source: str = "manual") -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print("  REPLAY RESULTS")
        print("=" * 70)
        print(f"  Source:   {source}")
        print(f"  Samples:  {result.sample_count}")

        # Overall
        print("\n" + "-" * 70)
        print("  OVERALL")
        print("-" * 70)
        print(f"  Buys:           {result.buy_count}")
        print(f"  Sells:          {result.sell_count}")
        print(f"  Open position:  {'yes' if result.position.is_holding else 'no'}")
        print(f"  Total profit:   {result.total_profit:+.3f}%")

        # Event log
        if result.events:
            print("\n" + "-" * 70)
            print("  EVENTS")
            print("-" * 70)
            print(f"  {'Index':>6} {'Kind':<5} {'Price':>12} {'Profit%':>9}  Detail")
            cumulative = iter(result.cumulative_profit)
            for e in result.events:
                if e.is_buy:
                    print(f"  {e.time_index:>6} {'BUY':<5} {e.price:>12.4f} {'':>9}  {e.reason}")
                else:
                    print(
                        f"  {e.time_index:>6} {'SELL':<5} {e.price:>12.4f} "
                        f"{e.profit_pct:>+9.3f}  {e.exit_reason.value} "
                        f"(cum {next(cumulative):+.3f}%)"
                    )

        print("\n" + "=" * 70)

    @staticmethod
    def to_dict(result: SimulationResult, source: str = "manual") -> dict:
        """Convert results to JSON-serializable dict."""
        return {
            "metadata": {
                "source": source,
                "sample_count": result.sample_count,
            },
            "overall": {
                "buys": result.buy_count,
                "sells": result.sell_count,
                "holding": result.position.is_holding,
                "total_profit": round(result.total_profit, 6),
            },
            "cumulative_profit": result.cumulative_profit,
            "events": [e.model_dump(mode="json") for e in result.events],
        }

    @staticmethod
    def save_json(result: SimulationResult, filepath: str, source: str = "manual") -> None:
        """Save results to JSON file."""
        data = ReportFormatter.to_dict(result, source)
        with open(filepath, "wb") as f:
            f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2))
        print(f"\nResults saved to {filepath}")
