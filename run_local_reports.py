#!/usr/bin/env python3
"""
Local Reports Script
Generates the daily, weekly and monthly reports locally and prints them.

Usage: python run_local_reports.py [YYYY-MM-DD]
"""

import asyncio
import json
import os
import sys
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Add app to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.analytics.periods import parse_date, shop_now
from app.analytics.report_service import ReportService
from app.services.data_source import get_data_source


async def generate(day):
    service = ReportService(get_data_source())
    return await service.generate_all_reports(now=shop_now(), day=day)


def main():
    print("=" * 60)
    print("LOCAL REPORTS SCRIPT")
    print("=" * 60)

    day = parse_date(sys.argv[1]) if len(sys.argv) > 1 else shop_now().date()
    print(f"\nReference date: {day.isoformat()}")

    reports = asyncio.run(generate(day))

    for report_type, envelope in reports.items():
        print("\n" + "-" * 40)
        print(f"{report_type.value.upper()} REPORT")
        print("-" * 40)
        if envelope.error:
            print(f"WARNING: {envelope.error}")
        print(json.dumps(envelope.to_dict()["data"], indent=2, ensure_ascii=False))

    print("\n" + "=" * 60)
    print("REPORTS COMPLETE!")
    print("=" * 60)


if __name__ == "__main__":
    main()
