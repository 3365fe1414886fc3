import numpy as np
import pandas as pd
import pytest

import config as config_pkg
from price_forecaster_src import config_utils


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from the packaged defaults."""
    config_pkg._config_manager = None
    config_utils.config_manager = None
    yield
    config_pkg._config_manager = None
    config_utils.config_manager = None


def _garch_random_walk(n, rng, start=500.0, drift=0.05, omega=0.1, alpha=0.1, beta=0.8):
    eps = np.zeros(n)
    sigma2 = np.full(n, omega / (1.0 - alpha - beta))
    for t in range(1, n):
        sigma2[t] = omega + alpha * eps[t - 1] ** 2 + beta * sigma2[t - 1]
        eps[t] = np.sqrt(sigma2[t]) * rng.standard_normal()
    return start + np.cumsum(drift + eps)


@pytest.fixture
def synthetic_market():
    """
    Daily prices with GARCH(1,1) shocks and a seasonal three-station climate.

    Returns a dict with ``dates``, ``price``, ``temp`` (national truth),
    ``price_raw`` (formatted strings) and ``climate_raw`` (station rows with
    gaps).
    """
    def build(n=1030, seed=11):
        rng = np.random.default_rng(seed)
        dates = pd.date_range("2019-01-01", periods=n, freq="D")
        price = _garch_random_walk(n, rng)
        t = np.arange(n)
        temp = 20.0 + 8.0 * np.sin(2.0 * np.pi * t / 365.0) + rng.normal(0.0, 1.0, n)

        # Mixed date formats and thousands separators, as in exchange exports
        date_text = [d.strftime("%Y-%m-%d") if i % 2 == 0 else d.strftime("%m/%d/%Y") for i, d in enumerate(dates)]
        price_raw = pd.DataFrame({"date": date_text, "price": [f"{p:,.2f}" for p in price]})

        rows = []
        for station, offset in (("north", -2.0), ("central", 0.0), ("south", 2.0)):
            noisy = temp + offset
            for i, d in enumerate(dates):
                missing_temp = rng.random() < 0.05
                rows.append({
                    "date": d.strftime("%Y-%m-%d"),
                    "station": station,
                    "max_temp": f"{noisy[i] + 5.0:.1f}",
                    "min_temp": f"{noisy[i] - 5.0:.1f}",
                    "avg_temp": "" if missing_temp else f"{noisy[i]:.2f}",
                    "precipitation": "" if rng.random() < 0.3 else f"{rng.gamma(1.0, 2.0):.1f}",
                })
        climate_raw = pd.DataFrame(rows)
        return {"dates": dates, "price": price, "temp": temp, "price_raw": price_raw, "climate_raw": climate_raw}

    return build
