"""Tax bracket, credit and limit reference data for CFP."""

from __future__ import annotations

from typing import Final

BASE_TAX_YEAR: Final[int] = 2026
DEFAULT_INFLATION: Final[float] = 0.025
DEFAULT_PROVINCE: Final[str] = "ON"

PROVINCES: Final[set[str]] = {
    "AB",
    "BC",
    "MB",
    "NB",
    "NL",
    "NS",
    "NT",
    "NU",
    "ON",
    "PE",
    "QC",
    "SK",
    "YT",
}

# Brackets are (min, max, marginal_rate). Max None means no upper bound.
FEDERAL_BRACKETS: Final[dict[int, list[tuple[float, float | None, float]]]] = {
    2026: [
        (0.0, 58_523.0, 0.14),
        (58_523.0, 117_045.0, 0.205),
        (117_045.0, 181_440.0, 0.26),
        (181_440.0, 258_482.0, 0.29),
        (258_482.0, None, 0.33),
    ],
}

FEDERAL_BPA: Final[dict[int, float]] = {2026: 16_452.0}
FEDERAL_EMPLOYMENT_AMOUNT: Final[dict[int, float]] = {2026: 1_501.0}

PROVINCIAL_BRACKETS: Final[dict[int, dict[str, list[tuple[float, float | None, float]]]]] = {
    2026: {
        "ON": [
            (0.0, 53_891.0, 0.0505),
            (53_891.0, 107_785.0, 0.0915),
            (107_785.0, 150_000.0, 0.1116),
            (150_000.0, 220_000.0, 0.1216),
            (220_000.0, None, 0.1316),
        ],
        "BC": [
            (0.0, 45_654.0, 0.0506),
            (45_654.0, 91_310.0, 0.077),
            (91_310.0, 104_835.0, 0.105),
            (104_835.0, 127_299.0, 0.1229),
            (127_299.0, None, 0.205),
        ],
        "AB": [
            (0.0, 148_269.0, 0.10),
            (148_269.0, 177_922.0, 0.12),
            (177_922.0, 237_230.0, 0.13),
            (237_230.0, 355_845.0, 0.14),
            (355_845.0, None, 0.15),
        ],
        "QC": [
            (0.0, 51_780.0, 0.14),
            (51_780.0, 103_545.0, 0.19),
            (103_545.0, 126_000.0, 0.24),
            (126_000.0, None, 0.2575),
        ],
        "MB": [
            (0.0, 47_000.0, 0.108),
            (47_000.0, 100_000.0, 0.1275),
            (100_000.0, None, 0.174),
        ],
        "SK": [
            (0.0, 49_720.0, 0.105),
            (49_720.0, 142_058.0, 0.125),
            (142_058.0, None, 0.145),
        ],
        "NS": [
            (0.0, 29_590.0, 0.0879),
            (29_590.0, 59_180.0, 0.1495),
            (59_180.0, 93_000.0, 0.1667),
            (93_000.0, 150_000.0, 0.175),
            (150_000.0, None, 0.21),
        ],
        "NB": [
            (0.0, 49_958.0, 0.094),
            (49_958.0, 99_916.0, 0.14),
            (99_916.0, 185_064.0, 0.16),
            (185_064.0, None, 0.195),
        ],
        "NL": [
            (0.0, 43_198.0, 0.087),
            (43_198.0, 86_395.0, 0.145),
            (86_395.0, 154_244.0, 0.158),
            (154_244.0, 215_943.0, 0.178),
            (215_943.0, None, 0.198),
        ],
        "PE": [
            (0.0, 32_656.0, 0.0965),
            (32_656.0, 64_313.0, 0.1363),
            (64_313.0, 105_000.0, 0.1665),
            (105_000.0, 140_000.0, 0.18),
            (140_000.0, None, 0.1875),
        ],
        "NT": [
            (0.0, 50_597.0, 0.059),
            (50_597.0, 101_198.0, 0.086),
            (101_198.0, 164_525.0, 0.122),
            (164_525.0, None, 0.1405),
        ],
        "NU": [
            (0.0, 53_268.0, 0.04),
            (53_268.0, 106_537.0, 0.07),
            (106_537.0, 173_205.0, 0.09),
            (173_205.0, None, 0.115),
        ],
        "YT": [
            (0.0, 57_375.0, 0.064),
            (57_375.0, 114_750.0, 0.09),
            (114_750.0, 158_519.0, 0.109),
            (158_519.0, 500_000.0, 0.128),
            (500_000.0, None, 0.15),
        ],
    },
}

PROVINCIAL_BPA: Final[dict[int, dict[str, float]]] = {
    2026: {
        "ON": 12_989.0,
        "BC": 11_981.0,
        "AB": 21_003.0,
        "QC": 17_183.0,
        "MB": 15_780.0,
        "SK": 17_661.0,
        "NS": 8_481.0,
        "NB": 12_458.0,
        "NL": 10_818.0,
        "PE": 12_000.0,
        "NT": 16_593.0,
        "NU": 17_925.0,
        "YT": 16_452.0,
    },
}

# Per-province credit bases: employment amount, age amount and its clawback
# threshold, pension income cap, disability amount, medical expense cap.
PROVINCIAL_CREDIT_AMOUNTS: Final[dict[int, dict[str, dict[str, float]]]] = {
    2026: {
        "ON": {"employment": 0.0, "age": 5_610.0, "age_clawback": 42_335.0, "pension": 1_762.0, "disability": 10_250.0, "medical_cap": 2_885.0},
        "BC": {"employment": 0.0, "age": 5_591.0, "age_clawback": 39_784.0, "pension": 1_000.0, "disability": 9_428.0, "medical_cap": 2_689.0},
        "AB": {"employment": 0.0, "age": 5_397.0, "age_clawback": 42_335.0, "pension": 1_719.0, "disability": 16_066.0, "medical_cap": 2_961.0},
        "QC": {"employment": 0.0, "age": 3_574.0, "age_clawback": 37_680.0, "pension": 0.0, "disability": 0.0, "medical_cap": 0.0},
        "MB": {"employment": 0.0, "age": 3_728.0, "age_clawback": 27_749.0, "pension": 1_000.0, "disability": 6_180.0, "medical_cap": 1_728.0},
        "SK": {"employment": 0.0, "age": 5_397.0, "age_clawback": 42_335.0, "pension": 1_000.0, "disability": 11_094.0, "medical_cap": 2_837.0},
        "NS": {"employment": 0.0, "age": 4_141.0, "age_clawback": 24_950.0, "pension": 1_173.0, "disability": 7_341.0, "medical_cap": 1_637.0},
        "NB": {"employment": 0.0, "age": 5_397.0, "age_clawback": 42_335.0, "pension": 1_000.0, "disability": 9_499.0, "medical_cap": 2_688.0},
        "NL": {"employment": 0.0, "age": 5_397.0, "age_clawback": 42_335.0, "pension": 1_000.0, "disability": 7_064.0, "medical_cap": 2_398.0},
        "PE": {"employment": 0.0, "age": 4_141.0, "age_clawback": 27_749.0, "pension": 1_000.0, "disability": 6_890.0, "medical_cap": 1_678.0},
        "NT": {"employment": 0.0, "age": 7_898.0, "age_clawback": 42_335.0, "pension": 1_000.0, "disability": 14_160.0, "medical_cap": 2_834.0},
        "NU": {"employment": 0.0, "age": 13_555.0, "age_clawback": 42_335.0, "pension": 2_000.0, "disability": 15_440.0, "medical_cap": 2_834.0},
        "YT": {"employment": 1_501.0, "age": 9_208.0, "age_clawback": 46_432.0, "pension": 2_000.0, "disability": 10_138.0, "medical_cap": 2_834.0},
    },
}

# Provincial dividend tax credit as a share of the grossed-up dividend.
PROVINCIAL_DIV_CREDITS: Final[dict[int, dict[str, tuple[float, float]]]] = {
    2026: {
        "ON": (0.100, 0.029863),
        "BC": (0.12, 0.0196),
        "AB": (0.0812, 0.0218),
        "QC": (0.117, 0.0342),
        "MB": (0.08, 0.007835),
        "SK": (0.11, 0.02519),
        "NS": (0.0885, 0.015),
        "NB": (0.14, 0.0275),
        "NL": (0.063, 0.032),
        "PE": (0.105, 0.013),
        "NT": (0.115, 0.06),
        "NU": (0.0551, 0.0261),
        "YT": (0.1202, 0.0067),
    },
}

# Dividend gross-up and federal credit: (gross_up, federal_credit).
ELIGIBLE_DIVIDEND: Final[dict[int, tuple[float, float]]] = {2026: (0.38, 0.150198)}
NON_ELIGIBLE_DIVIDEND: Final[dict[int, tuple[float, float]]] = {2026: (0.15, 0.090301)}

CPP_PARAMS: Final[dict[int, dict[str, float]]] = {
    2026: {
        "basic_exemption": 3_500.0,
        "ympe": 74_600.0,
        "yampe": 85_000.0,
        "employee_rate": 0.0595,
        "cpp2_rate": 0.04,
        "se_deduction_factor": 0.5,
    },
}

EI_PARAMS: Final[dict[int, dict[str, float]]] = {
    2026: {"max_insurable_earnings": 68_900.0, "employee_rate": 0.0163},
}

RRSP_LIMIT: Final[dict[int, float]] = {2026: 33_810.0}
RRSP_PCT_EARNED_INCOME: Final[float] = 0.18
RRSP_OVERCONTRIBUTION_BUFFER: Final[float] = 2_000.0

TFSA_FIRST_YEAR: Final[int] = 2009
TFSA_MIN_AGE: Final[int] = 18
TFSA_ANNUAL_LIMITS: Final[dict[int, float]] = {
    2009: 5_000.0,
    2010: 5_000.0,
    2011: 5_000.0,
    2012: 5_000.0,
    2013: 5_500.0,
    2014: 5_500.0,
    2015: 10_000.0,
    2016: 5_500.0,
    2017: 5_500.0,
    2018: 5_500.0,
    2019: 6_000.0,
    2020: 6_000.0,
    2021: 6_000.0,
    2022: 6_000.0,
    2023: 6_500.0,
    2024: 7_000.0,
    2025: 7_000.0,
    2026: 7_000.0,
}

# FHSA limits are legislated and never indexed.
FHSA_ANNUAL_LIMIT: Final[float] = 8_000.0
FHSA_LIFETIME_LIMIT: Final[float] = 40_000.0
FHSA_MAX_YEARS_OPEN: Final[int] = 15
FHSA_MAX_AGE: Final[int] = 71

RRIF_CONVERSION_AGE: Final[int] = 71
LIF_CONVERSION_AGE: Final[int] = 71

# CRA RRIF minimum withdrawal factors by age at the start of the year.
RRIF_FACTORS: Final[dict[int, float]] = {
    71: 0.0528,
    72: 0.0540,
    73: 0.0553,
    74: 0.0567,
    75: 0.0582,
    76: 0.0598,
    77: 0.0617,
    78: 0.0636,
    79: 0.0658,
    80: 0.0682,
    81: 0.0708,
    82: 0.0738,
    83: 0.0771,
    84: 0.0808,
    85: 0.0851,
    86: 0.0899,
    87: 0.0955,
    88: 0.1021,
    89: 0.1099,
    90: 0.1192,
    91: 0.1306,
    92: 0.1449,
    93: 0.1634,
    94: 0.1879,
}
RRIF_MAX_FACTOR: Final[float] = 0.20

OAS_CLAWBACK_THRESHOLD: Final[dict[int, float]] = {2026: 95_323.0}
OAS_CLAWBACK_RATE: Final[float] = 0.15

FEDERAL_AGE_AMOUNT: Final[dict[int, float]] = {2026: 9_208.0}
FEDERAL_AGE_CLAWBACK_THRESHOLD: Final[dict[int, float]] = {2026: 46_432.0}
AGE_CLAWBACK_RATE: Final[float] = 0.15
AGE_AMOUNT_MIN_AGE: Final[int] = 65

FEDERAL_PENSION_AMOUNT: Final[float] = 2_000.0
FEDERAL_DISABILITY_AMOUNT: Final[dict[int, float]] = {2026: 10_138.0}
FEDERAL_MEDICAL_CAP: Final[dict[int, float]] = {2026: 2_834.0}
MEDICAL_INCOME_PCT: Final[float] = 0.03
HOME_BUYERS_AMOUNT: Final[float] = 10_000.0

DONATION_LOW_TIER: Final[float] = 200.0
FEDERAL_DONATION_HIGH_RATE: Final[float] = 0.29
FEDERAL_DONATION_TOP_RATE: Final[float] = 0.33
DONATION_NET_INCOME_LIMIT: Final[float] = 0.75

QUEBEC_ABATEMENT_RATE: Final[float] = 0.165

ONTARIO_SURTAX_RATES: Final[tuple[float, float]] = (0.20, 0.36)
ONTARIO_SURTAX_THRESHOLDS: Final[dict[int, tuple[float, float]]] = {2026: (5_818.0, 7_446.0)}

# Ontario Health Premium rows: (lower, upper, base_premium, phase_in_rate).
# Taxable income above the last upper bound pays the last row's capped premium.
ONTARIO_HEALTH_PREMIUM: Final[list[tuple[float, float, float, float]]] = [
    (20_000.0, 25_000.0, 0.0, 0.06),
    (36_000.0, 38_500.0, 300.0, 0.06),
    (48_000.0, 48_600.0, 450.0, 0.25),
    (72_000.0, 72_600.0, 600.0, 0.25),
    (200_000.0, 200_600.0, 750.0, 0.25),
]

AMT_EXEMPTION: Final[float] = 173_205.0
AMT_RATE: Final[float] = 0.205
AMT_DONATION_ADDBACK: Final[float] = 0.5

CWB_EARNED_INCOME_FLOOR: Final[float] = 3_000.0
CWB_PHASE_IN_RATE: Final[float] = 0.27
CWB_MAX_BENEFIT: Final[float] = 1_428.0
CWB_PHASE_OUT_THRESHOLD: Final[float] = 23_495.0
CWB_PHASE_OUT_RATE: Final[float] = 0.15
CWB_INCOME_CEILING: Final[float] = 33_015.0

CAPITAL_GAINS_INCLUSION_RATE: Final[float] = 0.5
CG_TIER1_RATE: Final[float] = 0.5
CG_TIER2_RATE: Final[float] = 2.0 / 3.0
CG_TIER_THRESHOLD: Final[float] = 250_000.0

HBP_GRACE_YEARS: Final[int] = 2
HBP_REPAYMENT_YEARS: Final[int] = 15

RESP_GRANT_RATE: Final[float] = 0.20
RESP_GRANT_ANNUAL_ENTITLEMENT: Final[float] = 500.0
RESP_GRANT_ANNUAL_MAX: Final[float] = 1_000.0
RESP_GRANT_LIFETIME_MAX: Final[float] = 7_200.0

CPP_EARLY_REDUCTION_PER_YEAR: Final[float] = 0.072
CPP_DEFERRAL_INCREASE_PER_YEAR: Final[float] = 0.084
OAS_DEFERRAL_INCREASE_PER_YEAR: Final[float] = 0.072

ALLOCATION_TOLERANCE: Final[float] = 0.005
