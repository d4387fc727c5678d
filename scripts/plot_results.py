#!/usr/bin/env python3
# scripts/plot_results.py
import argparse
from ul_ofdma.plots import load_results_dir, plot_success_rates


def main():
    ap = argparse.ArgumentParser(description="Success rate per scheduler from sweep JSON files.")
    ap.add_argument("--results", default="artifacts/sweep", help="Directory of per-run JSON summaries")
    ap.add_argument("--out", default="artifacts/success_rate.png", help="Output PNG")
    ap.add_argument("--title", default="Frame success rate per scheduler", help="Figure title")
    ap.add_argument("--show", action="store_true", help="Show window")
    args = ap.parse_args()

    results = load_results_dir(args.results)
    print(f"[PLOT] {len(results)} result file(s) from {args.results}")
    plot_success_rates(results, title=args.title, save_path=args.out, show=args.show)
    print(f"[PLOT] Saved {args.out}")


if __name__ == "__main__":
    main()
