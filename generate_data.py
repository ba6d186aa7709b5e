# generate_data.py
import argparse
from datetime import datetime, timedelta
from pathlib import Path

from dairy_ledger.generate_data import write_milk_csv

parser = argparse.ArgumentParser(description="Generate a dummy milk ledger CSV.")
parser.add_argument("--rows", type=int, default=1000, help="Number of rows to generate")
parser.add_argument("--days", type=int, default=365, help="How many days back the dates may go")
parser.add_argument("--output", default="dummy_milk_ledger.csv", help="Output CSV path")
args = parser.parse_args()

now = datetime.now()
output_file = write_milk_csv(Path(args.output), args.rows, now - timedelta(days=args.days), now)
print(f"Wrote {args.rows} rows to {output_file}")
