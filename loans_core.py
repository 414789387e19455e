# loans_core.py
# Fixed-payment (annuity) amortization schedules.
#
# All money math is Decimal, rounded half-up to a currency quantum
# (cents by default, Decimal("1") for whole shillings).

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, Overflow, localcontext
from typing import Any, Dict, List

import pandas as pd

CENTS = Decimal("0.01")
WHOLE_UNITS = Decimal("1")
MONTHS_PER_YEAR = 12
# 100 years
MAX_TERM_MONTHS = 1200

SCHEDULE_COLUMNS = ["month", "payment", "principal", "interest", "balance"]

_PRECISION = 34
_ZERO = Decimal("0")


class InvalidLoanTerms(ValueError):
    """Raised when loan inputs cannot produce a schedule."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# ============================================================
# INPUT
# ============================================================
def _to_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidLoanTerms(field, "must be a number")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidLoanTerms(field, f"must be a number, got {value!r}") from None
    if not d.is_finite():
        raise InvalidLoanTerms(field, "must be finite")
    return d


@dataclass(frozen=True)
class LoanTerms:
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int

    @classmethod
    def parse(cls, principal, annual_rate_percent, term_months, quantum: Decimal = CENTS) -> "LoanTerms":
        """
        Validates raw inputs (str/int/float/Decimal) and returns LoanTerms.
        Nothing is clamped: every bad field raises InvalidLoanTerms.
        """
        p = _to_decimal(principal, "principal")
        if p <= 0:
            raise InvalidLoanTerms("principal", "must be greater than 0")
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            try:
                fits_quantum = p == p.quantize(quantum, rounding=ROUND_HALF_UP)
            except InvalidOperation:
                raise InvalidLoanTerms("principal", "is too large") from None
        if not fits_quantum:
            raise InvalidLoanTerms("principal", f"has more decimal places than {quantum}")

        rate = _to_decimal(annual_rate_percent, "annual_rate_percent")
        if rate < 0:
            raise InvalidLoanTerms("annual_rate_percent", "must not be negative")

        n = _to_decimal(term_months, "term_months")
        if n != n.to_integral_value():
            raise InvalidLoanTerms("term_months", "must be a whole number of months")
        if n <= 0:
            raise InvalidLoanTerms("term_months", "must be at least 1")
        if n > MAX_TERM_MONTHS:
            raise InvalidLoanTerms("term_months", f"is too large (max {MAX_TERM_MONTHS})")

        return cls(principal=p, annual_rate_percent=rate, term_months=int(n))

    @property
    def monthly_rate(self) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            return self.annual_rate_percent / Decimal(100) / Decimal(MONTHS_PER_YEAR)


# ============================================================
# OUTPUT
# ============================================================
@dataclass(frozen=True)
class PaymentScheduleEntry:
    month: int
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


@dataclass(frozen=True)
class LoanSchedule:
    terms: LoanTerms
    monthly_payment: Decimal
    total_interest: Decimal
    total_amount: Decimal
    entries: tuple

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {
                "month": e.month,
                "payment": e.payment,
                "principal": e.principal,
                "interest": e.interest,
                "balance": e.balance,
            }
            for e in self.entries
        ]

    def to_frame(self) -> pd.DataFrame:
        """Schedule as a float DataFrame, ready for st.dataframe / charts."""
        df = pd.DataFrame(self.to_records(), columns=SCHEDULE_COLUMNS)
        for col in SCHEDULE_COLUMNS[1:]:
            df[col] = df[col].astype(float)
        return df


# ============================================================
# ENGINE
# ============================================================
def _round(x: Decimal, quantum: Decimal) -> Decimal:
    return x.quantize(quantum, rounding=ROUND_HALF_UP)


def monthly_payment(terms: LoanTerms, quantum: Decimal = CENTS) -> Decimal:
    """
    Annuity payment; straight-line principal / n when the rate is 0.

    At 0% a principal smaller than n quanta rounds the payment down to 0
    (4 shillings over 10 months in WHOLE_UNITS), so total_amount is 0 and
    total_interest is -principal. The schedule still repays the principal
    in its last entry.
    """
    n = terms.term_months
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        r = terms.monthly_rate
        try:
            if r == 0:
                raw = terms.principal / Decimal(n)
            else:
                growth = (Decimal(1) + r) ** n
                raw = terms.principal * r * growth / (growth - Decimal(1))
            return _round(raw, quantum)
        except (Overflow, InvalidOperation):
            raise InvalidLoanTerms("annual_rate_percent", "is too large") from None


def compute_schedule(principal, annual_rate_percent, term_months, quantum: Decimal = CENTS) -> LoanSchedule:
    """
    Builds the month-by-month schedule for a fixed-payment loan.

    Each entry splits the payment into interest on the running balance and
    principal. The last entry takes whatever principal is left, so the
    final balance is exactly 0 and the principal column sums to the loan
    amount. Totals use the nominal payment: total_amount = payment * n.
    """
    terms = LoanTerms.parse(principal, annual_rate_percent, term_months, quantum=quantum)
    payment = monthly_payment(terms, quantum)
    n = terms.term_months

    entries: List[PaymentScheduleEntry] = []
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        r = terms.monthly_rate
        balance = terms.principal

        for month in range(1, n + 1):
            interest = _round(balance * r, quantum)
            if month == n:
                principal_part = balance
            else:
                principal_part = min(max(payment - interest, _ZERO), balance)

            balance = max(balance - principal_part, _ZERO)
            entries.append(
                PaymentScheduleEntry(
                    month=month,
                    payment=principal_part + interest,
                    principal=principal_part,
                    interest=interest,
                    balance=balance,
                )
            )

        total_amount = payment * n
        total_interest = total_amount - terms.principal

    return LoanSchedule(
        terms=terms,
        monthly_payment=payment,
        total_interest=total_interest,
        total_amount=total_amount,
        entries=tuple(entries),
    )
