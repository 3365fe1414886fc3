#!/usr/bin/env python3
"""
Futures price vs. national temperature: time-series report.

Usage
-----
    python price_forecaster.py --help
    python price_forecaster.py --price-csv data/prices.csv --climate-csv data/climate.csv

The implementation lives in price_forecaster_src/; see
price_forecaster_src/main.py for the stages and command-line options.
"""

from price_forecaster_src.main import main

if __name__ == "__main__":
    main()
