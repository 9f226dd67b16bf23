"""Command-line entry point for AmzPulse."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amzpulse",
        description="Browse the product catalog, compute FBA/FBM profit, request AI assessments, run batch analyses.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── products ───────────────────────────────────────────────────────────
    products_cmd = sub.add_parser("products", help="List catalog products matching the filter criteria.")
    products_cmd.add_argument("--config", default=None, help="Path to config.yaml (default: environment only)")
    products_cmd.add_argument("--category", default="")
    products_cmd.add_argument("--sub-category", default="")
    products_cmd.add_argument("--min-price", type=float, default=0)
    products_cmd.add_argument("--max-price", type=float, default=0)
    products_cmd.add_argument("--min-roi", type=float, default=0, help="Minimum estimated ROI %%")
    products_cmd.add_argument("--max-bsr", type=int, default=0)
    products_cmd.add_argument("--season", default="")
    products_cmd.add_argument(
        "--search",
        default="",
        help="Name/brand/ASIN substring. A full ASIN not in the catalog is fetched from the backend.",
    )
    products_cmd.add_argument("--json", dest="output_json", action="store_true", help="Output JSON only.")

    # ── profit ─────────────────────────────────────────────────────────────
    profit_cmd = sub.add_parser("profit", help="Run the FBA/FBM profit calculator for one product.")
    profit_cmd.add_argument("--config", default=None)
    profit_cmd.add_argument("--asin", required=True, help="ASIN (fetched if not in the catalog) or catalog id")
    profit_cmd.add_argument("--buy-cost", type=float, required=True)
    profit_cmd.add_argument("--sale-price", type=float, default=None, help="Defaults to the buy-box price")
    profit_cmd.add_argument("--prep-cost", type=float, default=0.0)
    profit_cmd.add_argument("--shipping-cost", type=float, default=0.0)
    profit_cmd.add_argument("--mode", choices=["FBA", "FBM"], default="FBA")
    profit_cmd.add_argument("--export", default=None, metavar="PATH", help="Write the analysis row as CSV.")
    profit_cmd.add_argument("--json", dest="output_json", action="store_true")

    # ── analyze ────────────────────────────────────────────────────────────
    analyze_cmd = sub.add_parser("analyze", help="Request the AI sell-potential assessment for one product.")
    analyze_cmd.add_argument("--config", default=None)
    analyze_cmd.add_argument("--asin", required=True, help="ASIN (fetched if not in the catalog) or catalog id")
    analyze_cmd.add_argument("--buy-cost", type=float, default=0.0, help="Include your sourcing cost in the prompt.")
    analyze_cmd.add_argument("--json", dest="output_json", action="store_true")

    # ── batch ──────────────────────────────────────────────────────────────
    batch_cmd = sub.add_parser("batch", help="Analyze many ASINs with one backend request (pro plan).")
    batch_cmd.add_argument("--config", default=None)
    batch_cmd.add_argument("--asins", default=None, help="Comma-separated ASINs")
    batch_cmd.add_argument("--file", default=None, help="File with one ASIN per line")
    batch_cmd.add_argument("--csv", default=None, metavar="PATH", help="Write results to a CSV file.")
    batch_cmd.add_argument("--markdown", default=None, metavar="PATH", help="Write a Markdown summary.")

    return parser


def _load_dashboard(config_path: str | None):
    from .api import build_dashboard
    from .config import ConfigError, load_config

    try:
        cfg = load_config(config_path)
    except ConfigError as exc:
        print(f"[ERROR] Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)
    return cfg, build_dashboard(cfg)


async def _resolve_product(dashboard, key: str):
    from .filters import is_asin_query

    product = dashboard.find(key) or dashboard.find_by_asin(key)
    if product is None and is_asin_query(key):
        product = await dashboard.lookup(key)
    return product


# ---------------------------------------------------------------------------
# Sub-command implementations
# ---------------------------------------------------------------------------

def _cmd_products(args: argparse.Namespace) -> None:
    from .filters import is_asin_query
    from .models import FilterState
    from .profit import estimate_profit
    from .taxonomy import is_valid_pair

    if args.category and not is_valid_pair(args.category, args.sub_category):
        print(f"[WARNING] '{args.sub_category}' is not a sub-category of '{args.category}'.", file=sys.stderr)

    _, dashboard = _load_dashboard(args.config)
    dashboard.set_filters(
        FilterState.from_form(
            {
                "category": args.category,
                "sub_category": args.sub_category,
                "min_price": args.min_price,
                "max_price": args.max_price,
                "min_roi": args.min_roi,
                "max_bsr": args.max_bsr,
                "season": args.season,
                "search": args.search,
            }
        )
    )

    async def run() -> list:
        await dashboard.bootstrap()
        if is_asin_query(args.search):
            await dashboard.lookup(args.search)
        return dashboard.visible_products()

    products = asyncio.run(run())
    if not products:
        print("No products match the current filters.", file=sys.stderr)
        sys.exit(1)

    if args.output_json:
        print(json.dumps([p.to_dict() for p in products], indent=2, ensure_ascii=False))
        return

    sep = "-" * 80
    print(sep)
    print(f"  {len(products)} product(s)")
    print(sep)
    for p in products:
        badges = " ".join(b for b, on in (("HAZMAT", p.is_hazmat), ("IP", p.is_ip_risk), ("RARE", p.is_rare_find)) if on)
        print(f"  [{p.id}] {p.asin}  {p.name}  {badges}".rstrip())
        print(
            f"      {p.category}{' > ' + p.sub_category if p.sub_category else ''}"
            f"  ${p.price:.2f}  BSR #{p.bsr:,}  ~{p.estimated_sales:,}/mo"
            f"  est. ROI {estimate_profit(p).roi_pct:.1f}%"
        )
    print(sep)


def _cmd_profit(args: argparse.Namespace) -> None:
    from .profit import FulfillmentMode, calculate_profit
    from .report import analysis_dataframe

    _, dashboard = _load_dashboard(args.config)
    product = asyncio.run(_resolve_product(dashboard, args.asin))
    if product is None:
        print(f"[ERROR] Unknown product: {args.asin}", file=sys.stderr)
        sys.exit(1)

    result = calculate_profit(
        product,
        sale_price=product.price if args.sale_price is None else args.sale_price,
        buy_cost=args.buy_cost,
        prep_cost=args.prep_cost,
        shipping_cost=args.shipping_cost,
        mode=FulfillmentMode(args.mode),
    )

    if args.export:
        path = Path(args.export)
        path.parent.mkdir(parents=True, exist_ok=True)
        analysis_dataframe(product, result, args.shipping_cost).to_csv(path, index=False)
        logger.info("Analysis exported: %s", path)

    if args.output_json:
        print(json.dumps(result.as_dict(), indent=2))
        return

    verdict = result.verdict()
    print(f"{product.name} ({product.asin}) via {result.mode.value}")
    print(f"  Sale price : ${result.sale_price:.2f}")
    print(f"  Buy cost   : ${result.buy_cost:.2f}")
    print(f"  Total fees : ${result.total_fees:.2f}")
    print(f"  Net profit : ${result.profit:.2f}")
    print(f"  ROI        : {result.roi_pct:.2f}% ({verdict['roi']})")
    print(f"  Margin     : {result.margin_pct:.2f}% ({verdict['margin']})")


def _cmd_analyze(args: argparse.Namespace) -> None:
    from .profit import calculate_profit

    _, dashboard = _load_dashboard(args.config)
    if not dashboard.assessor.is_enabled:
        logger.warning("No Gemini API key configured; the result will be the fallback assessment.")

    async def run():
        product = await _resolve_product(dashboard, args.asin)
        if product is None:
            return None
        context = calculate_profit(product, product.price, args.buy_cost).context()
        return await dashboard.request_analysis(product.id, context=context)

    result = asyncio.run(run())
    if result is None:
        print(f"[ERROR] Unknown product: {args.asin}", file=sys.stderr)
        sys.exit(1)

    if args.output_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"Grade {result.grade}  (score {result.score:.0f}/100)")
    print(f"  {result.summary}")
    print(f"  Competition: {result.competition_level}   Demand: {result.demand_level}")
    print(f"  FBA: {result.fba_analysis}")
    print(f"  FBM: {result.fbm_analysis}")
    if result.ip_risk_assessment:
        print(f"  IP risk: {result.ip_risk_assessment}")
    if result.seasonality_insight:
        print(f"  Seasonality: {result.seasonality_insight}")
    for pro in result.pros:
        print(f"  + {pro}")
    for con in result.cons:
        print(f"  - {con}")
    print(f"  Action: {result.suggested_action}")


def _cmd_batch(args: argparse.Namespace) -> None:
    from .report import generate_markdown_summary, write_batch_csv

    text = args.asins or ""
    if args.file:
        try:
            text = "\n".join([text, Path(args.file).read_text(encoding="utf-8")])
        except OSError as exc:
            print(f"[ERROR] Cannot read --file: {exc}", file=sys.stderr)
            sys.exit(2)
    if not text.strip():
        print("[ERROR] batch requires --asins or --file.", file=sys.stderr)
        sys.exit(2)

    cfg, dashboard = _load_dashboard(args.config)

    async def run() -> list:
        if not await dashboard.bootstrap():
            return []
        return await dashboard.run_batch(text)

    results = asyncio.run(run())
    if dashboard.auth_prompt_open or dashboard.session is None:
        print("[ERROR] Batch analysis requires a signed-in pro account.", file=sys.stderr)
        sys.exit(1)
    if dashboard.batch_error:
        print(f"[WARNING] Batch request failed ({dashboard.batch_error}); showing placeholder rows.")

    if args.csv:
        write_batch_csv(results, args.csv)
    summary = generate_markdown_summary(results, dashboard.batch_error, cfg.runtime.timezone)
    if args.markdown:
        path = Path(args.markdown)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(summary, encoding="utf-8")
    print(summary)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    parser = _build_parser()
    args = parser.parse_args(argv)

    commands = {
        "products": _cmd_products,
        "profit": _cmd_profit,
        "analyze": _cmd_analyze,
        "batch": _cmd_batch,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(0)
    handler(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
