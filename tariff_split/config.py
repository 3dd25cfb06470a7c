# tariff_split/config.py

# ---------- Reverse calculation ----------
# Leftover energy cost below this amount (currency units) is treated as
# floating-point residue and not converted into extra units.
DEFAULT_REVERSE_EPSILON = 0.01

# ---------- Default residential tariff ----------
# Cumulative slab limits in kWh with their per-unit rates (BDT/kWh).
DEFAULT_TARIFF_ROWS = [
    {"limit": 75, "rate": 5.26},
    {"limit": 200, "rate": 7.20},
    {"limit": 300, "rate": 7.59},
    {"limit": 400, "rate": 8.02},
    {"limit": 600, "rate": 12.67},
    {"limit": 1000, "rate": 14.61},
]
DEFAULT_DEMAND_CHARGE = 84.0        # 2 kW sanctioned load at 42/kW
DEFAULT_METER_RENT = 10.0
DEFAULT_VAT_RATE = 0.05
DEFAULT_BKASH_CHARGE = 10.0
DEFAULT_LATE_FEE = 0.0

# ---------- Split report ----------
# Per-user amounts are shown rounded to whole currency units.
DISPLAY_ROUNDING_UNIT = 1.0

# ---------- Web API ----------
MAX_UPLOAD_MB = 2
