#!/usr/bin/env python3
"""
Dental Procedure Coding Assistant - Demo CLI

Shows what the deterministic layer does with clinician shorthand:
category pre-filter, extracted surfaces/canals/minutes, and the
validated code list for a given LLM response.

Usage:
    python demo_cli.py                                  # Interactive mode
    python demo_cli.py --sample                         # Built-in scenarios
    python demo_cli.py --text "comp 36 MOD"             # Classify only
    python demo_cli.py --text "comp 36 MOD" --llm-response llm.json
    python demo_cli.py --text "comp 36 MOD" --live      # Call Gemini (GEMINI_API_KEY)
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dental_coding.core.exceptions import CodingError
from dental_coding.services.catalog import get_code_catalog
from dental_coding.services.category_classifier import classify_with_flag
from dental_coding.services.response_parser import ParseFailure, parse_llm_response
from dental_coding.services.shorthand import (
    extract_canal_count,
    extract_minutes,
    extract_surfaces,
    text_surface_count,
)
from dental_coding.services.treatment_chat import enrich, get_treatment_chat_pipeline, run_rule_stages

# ============================================================================
# Sample scenarios (clinician text + a canned LLM response)
# ============================================================================

SAMPLES = [
    ("comp 36 MOD", [{"code": "V92", "toothNumbers": [36], "reasoning": "comp 36 MOD"}]),
    ("wkb 36", [{"code": "E13", "toothNumbers": [36], "reasoning": "wkb 36"}]),
    ("gebitsreiniging 20 min", [{"code": "M03", "quantity": 1, "reasoning": "gebitsreiniging"}]),
    ("oppervlakteverdoving, ext 46", [
        {"code": "A15", "reasoning": "oppervlakteverdoving"},
        {"code": "H11", "toothNumbers": [46], "reasoning": "ext 46"},
        {"code": "A10", "isCompanion": True, "reasoning": "verdoving bij extractie"},
    ]),
]

# ============================================================================
# Display Helpers
# ============================================================================


class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'
    GRAY = '\033[90m'


def print_header(text: str, char: str = "="):
    """Print a formatted header."""
    width = 80
    print()
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text.center(width)}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{char * width}{Colors.END}")


def print_subheader(text: str):
    """Print a formatted subheader."""
    print()
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.YELLOW}{'─' * 80}{Colors.END}")


def print_item(label: str, value: str, indent: int = 2):
    """Print a labeled item."""
    spaces = " " * indent
    print(f"{spaces}{Colors.GRAY}{label}:{Colors.END} {value}")


def print_error(text: str):
    """Print an error message."""
    print(f"  {Colors.RED}✗{Colors.END} {text}")


# ============================================================================
# Analysis
# ============================================================================


def show_classification(text: str):
    """Categories and shorthand facts for a text."""
    categories, widened = classify_with_flag(text)
    print_subheader("CLASSIFICATION")
    names = ", ".join(sorted(c.value for c in categories))
    print_item("Categories", f"{names}{' (widened)' if widened else ''}")
    print_item("Surfaces", str(extract_surfaces(text)))
    print_item("Surface count", str(text_surface_count(text)))
    print_item("Canal count", str(extract_canal_count(text)))
    print_item("Minutes", str(extract_minutes(text)))


def show_suggestions(suggestions, response: str | None = None):
    """Print a validated suggestion list."""
    print_subheader(f"SUGGESTIONS ({len(suggestions)})")
    if response:
        print_item("Response", response)
    for s in suggestions:
        teeth = ",".join(str(t) for t in s.tooth_numbers) or "-"
        tag = f"{Colors.GRAY}[companion]{Colors.END} " if s.is_companion else ""
        color = Colors.GREEN if s.confidence.value == "high" else Colors.YELLOW
        print(
            f"  {tag}{Colors.BOLD}{s.nza_code}{Colors.END} x{s.quantity} "
            f"teeth={teeth} €{s.unit_price} {color}{s.confidence.value}{Colors.END}"
        )
        print(f"      {Colors.GRAY}{s.description}{Colors.END}")
        for note in s.corrections:
            print(f"      {Colors.YELLOW}{note}{Colors.END}")


def run_offline(text: str, llm_text: str):
    """Rule stages on a given LLM response."""
    show_classification(text)

    parsed = parse_llm_response(llm_text)
    if isinstance(parsed, ParseFailure):
        print_error(f"LLM response unusable: {parsed.reason.value}")
        return

    catalog = get_code_catalog()
    show_suggestions(enrich(run_rule_stages(parsed.suggestions, text, catalog), catalog))


def run_live(text: str):
    """Full pipeline against Gemini."""
    show_classification(text)
    try:
        result = asyncio.run(get_treatment_chat_pipeline().run(text))
    except CodingError as e:
        print_error(f"{e.status_code}: {e.message}")
        return
    show_suggestions(result.suggestions, result.response)


def run_samples():
    """Built-in scenarios."""
    for text, llm_items in SAMPLES:
        print_header(f"SAMPLE: {text}")
        print_item("LLM response", json.dumps(llm_items, ensure_ascii=False))
        run_offline(text, json.dumps(llm_items))


def interactive_mode(live: bool):
    """Read shorthand lines and show the analysis."""
    print_header("DENTAL PROCEDURE CODING - INTERACTIVE DEMO")
    print("  Type clinician shorthand (e.g. 'comp 36 MOD'). 'quit' to exit.\n")

    while True:
        try:
            text = input(f"{Colors.BOLD}demo>{Colors.END} ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if text.lower() in ('quit', 'exit', 'q'):
            print("\nGoodbye!")
            break
        if not text:
            continue

        if live:
            run_live(text)
        else:
            show_classification(text)


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    parser = argparse.ArgumentParser(
        description="Dental Procedure Coding Assistant - Demo CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python demo_cli.py --sample
  python demo_cli.py --text "wkb 36" --llm-response response.json
  python demo_cli.py --text "comp 36 MOD" --live
"""
    )
    parser.add_argument('--text', '-t', help='Clinician shorthand to analyze')
    parser.add_argument('--llm-response', '-r', help='File with a raw LLM JSON response')
    parser.add_argument('--live', '-l', action='store_true', help='Call Gemini (needs GEMINI_API_KEY)')
    parser.add_argument('--sample', '-s', action='store_true', help='Run the built-in scenarios')

    args = parser.parse_args()

    if args.sample:
        run_samples()
    elif args.text and args.llm_response:
        path = Path(args.llm_response)
        if not path.exists():
            print(f"Error: File not found: {args.llm_response}")
            sys.exit(1)
        print_header(f"ANALYZING: {args.text}")
        run_offline(args.text, path.read_text(encoding="utf-8"))
    elif args.text and args.live:
        print_header(f"ANALYZING: {args.text}")
        run_live(args.text)
    elif args.text:
        print_header(f"ANALYZING: {args.text}")
        show_classification(args.text)
    else:
        interactive_mode(args.live)


if __name__ == "__main__":
    main()
