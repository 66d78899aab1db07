"""Re-run extraction over result pages saved with `--save-html`.

Usage: python worker/scripts/extract_saved_pages.py <pages-dir> <output.xlsx> [REGION]
"""
import logging
import sys
from pathlib import Path

from localpack.etl.export import write_workbook
from localpack.etl.extract import extract_page
from localpack.jobs.run_search import dedupe_records

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")

if len(sys.argv) < 3:
    print(__doc__.strip())
    raise SystemExit(2)

folder = Path(sys.argv[1])
output = Path(sys.argv[2])
region = sys.argv[3].upper() if len(sys.argv) > 3 else None

if not folder.is_dir():
    print("No pages folder:", folder)
    raise SystemExit(0)

records = []
for path in sorted(folder.glob("*.html")):
    page = extract_page(path.read_text(encoding="utf-8"), default_region=region)
    print(path.name, "=>", page.status.value, len(page.records))
    records.extend(page.records)

write_workbook(dedupe_records(records), output)
print("Wrote", output)
