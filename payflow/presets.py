"""Business constants used by the payment-flow engine."""

DISCLAIMER = (
    "Simulation only. Installments, corrections and insurance values are estimates "
    "based on the builder's commercial policy and do not replace the bank's or the "
    "builder's final contract figures."
)

# Monthly correction rates for deferred builder financing.
RATE_BEFORE_DELIVERY = 0.005
RATE_AFTER_DELIVERY = 0.015

# Signal at signing must cover at least this share of the effective sale value.
SIGNAL_MINIMUM_PCT = 0.055

# Share of gross income that installments may commit.
INCOME_COMMITMENT_LIMIT = 0.50

SPECIAL_ENTERPRISE = "Reserva Parque Clube"

# Corrected pro-soluto may not exceed this share of the sale value.
PRO_SOLUTO_CAP = {"standard": 0.1499, "special": 0.1799}

# Installment ceilings keyed by (special enterprise?, condition).
MAX_INSTALLMENTS = {
    (True, "standard"): 60,
    (True, "special"): 66,
    (False, "standard"): 52,
    (False, "special"): 66,
}

# (max appraisal value, notary fee). Last tier is unbounded.
NOTARY_FEE_TIERS = [
    (251536.99, 0.0),
    (550237.16, 3991.79),
    (833216.27, 4345.05),
    (1100474.32, 4698.31),
    (1414895.55, 5051.55),
    (float("inf"), 5051.55),
]
NOTARY_PARTICIPANT_SURCHARGE = 110.0
NOTARY_BANK_SLIP_RATE = 0.015
NOTARY_CARD_INSTALLMENTS = (1, 12)
NOTARY_BANK_SLIP_INSTALLMENTS = (36, 40)

# Stepped plan: four periods, each a fraction of the first installment.
STEPPED_FACTORS = (1.0, 0.75, 0.5, 0.25)

BISECTION_ITERATIONS = 30
BISECTION_PRECISION = 0.01

RATE_SOLVER_GUESS = 0.01
RATE_SOLVER_ITERATIONS = 200
RATE_SOLVER_TOLERANCE = 1e-10
RATE_SOLVER_MIN_DERIVATIVE = 1e-12

MAX_ALLOCATION_ATTEMPTS = 10

INSURANCE_CACHE_TTL_SECONDS = 300

SUM_TOLERANCE = 0.01

PAYMENT_LABELS = {
    "signal_at_signing": "Sinal Ato",
    "signal_1": "Sinal 1",
    "signal_2": "Sinal 2",
    "signal_3": "Sinal 3",
    "pro_soluto": "Pró-Soluto",
    "good_standing_bonus": "Bônus Adimplência",
    "discount": "Desconto",
    "campaign_bonus": "Bônus Campanha",
    "fgts": "FGTS",
    "bank_financing": "Financiamento",
}
