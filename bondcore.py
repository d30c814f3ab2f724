# Copyright (C) Inco - All Rights Reserved.
#
# Unauthorized copying of this file, via any medium, is strictly prohibited. Proprietary and confidential.
#
# [SCHEDULE METHODS]
#
# The web front end used to carry two independent schedule routines. The bond detail page called one of them, the
# investment calculator called the other, and nothing on the bond record said which one was right. Both behaviours are
# kept here, as two named routines, and the bond now states its own method in "BondTerms.schedule_method".
#
#   • "bullet", the American method proper. A flat coupon over the full principal on every period, and the whole
#     principal on the last one. This is what the product advertises: "only coupons + principal at maturity".
#
#   • "declining", an annuity (French, or Price) schedule over a declining balance, with partial or total grace at the
#     start of the operation.
#
# [DATES]
#
# Payment dates step in calendar months from the anchor date, N × (12 / periods per year) months for period N. Dates
# are always computed from the anchor, never from the previous payment date, so that a 31st anchor does not decay into
# the 28th after February. Days are clamped to the end of shorter months (dateutil semantics).
#
# The old declining balance routine anchored its dates on "now". The anchor is an explicit parameter instead. It
# defaults to the emission date of the bond.
#
# [ROUNDING]
#
# There is no internal rounding. Rows carry the raw decimal values, so balances are continuous and amortizations add
# up to the principal. Values are rounded to cents, half up, only for display. See "format_schedule".
#
# [WEAKNESSES]
#
#   • The grace period is a count of periods, not a date range. A bond emitted mid-period cannot express a grace period
#     that ends mid-period.
#
#   • Waived interest in total grace is lost, not capitalised. This matches what the issuers were shown, but it is not
#     how a deferral is usually modelled.
#

'''
Bondcore, the bond schedule core.

Financial calculation library for fixed income bonds issued under the American method: interest-only coupons with the
principal repaid in full at maturity. A declining balance (annuity) schedule with partial or total grace periods is
also supported.

Besides the payment schedules, the library sizes an investor's expected return when a position is opened, summarises
the yield of a schedule, and offers a handful of calendar and rate helpers used by the surrounding application.
'''

# Python.
import typing as t
import decimal
import logging
import datetime
import functools
import dataclasses
import importlib.metadata

# Libs.
import typeguard
import dateutil.relativedelta

# Bondcore version (http://versioningit.readthedocs.io/en/stable/runtime-version.html).
__version__ = importlib.metadata.version('bondcore') if 'bondcore' in importlib.metadata.packages_distributions() else 'DEV'

# Logger object.
_LOG = logging.getLogger('bondcore')

# Zero as decimal.
_0 = decimal.Decimal()

# One as decimal.
_1 = decimal.Decimal(1)

# One hundred as decimal.
_100 = decimal.Decimal(100)

# Centi factor.
_CENTI = decimal.Decimal('0.01')

# Centesimal quantization.
_Q = functools.partial(decimal.Decimal.quantize, exp=_CENTI, rounding=decimal.ROUND_HALF_UP)

# A month.
_MONTH = dateutil.relativedelta.relativedelta(months=1)

# A year.
_YEAR = dateutil.relativedelta.relativedelta(years=1)

# Payment periods per year, by payment frequency.
_PERIODS_PER_YEAR = {
    'annual': 1,
    'semiannual': 2,
    'quarterly': 4,
    'monthly': 12
}

# Fallback for unknown payment frequencies, semiannual. The front end has always failed open here.
_DEFAULT_PERIODS_PER_YEAR = 2

# Grace period modes.
_GRACE_PERIOD = t.Literal['none', 'partial', 'total']

# Schedule methods.
_SCHEDULE_METHOD = t.Literal['bullet', 'declining']

# Frequency names used by the bonds table.
_RECORD_FREQUENCY = {
    'anual': 'annual',
    'semestral': 'semiannual',
    'trimestral': 'quarterly',
    'mensual': 'monthly'
}

# Grace period names used by the bonds table.
_RECORD_GRACE_PERIOD = {
    'sin_gracia': 'none',
    'gracia_parcial': 'partial',
    'gracia_total': 'total'
}

# Form limits, in years.
_MIN_TERM_YEARS = 1
_MAX_TERM_YEARS = 50

# Helpers. {{{
def _periods_per_year(frequency: str) -> int:
    '''
    Returns the number of payment periods per year for a payment frequency.

    >>> _periods_per_year('monthly')
    12
    >>> _periods_per_year('annual')
    1

    Unknown frequencies fall back to two periods per year, semiannual.

    >>> _periods_per_year('fortnightly')
    2
    '''

    return _PERIODS_PER_YEAR.get(frequency, _DEFAULT_PERIODS_PER_YEAR)

def _check_amounts(terms: 'BondTerms') -> None:
    for name in ('principal', 'annual_rate'):
        val = getattr(terms, name)

        if not isinstance(val, decimal.Decimal):
            raise TypeError(f'the {name.replace("_", " ")} must be a decimal, got {type(val).__name__} "{val}"')

def _payment_date(anchor: datetime.date, period: int, periods_per_year: int) -> datetime.date:
    '''
    Returns the payment date of a period, stepping calendar months from the anchor date.

    >>> from datetime import date
    >>>
    >>> _payment_date(date(2024, 1, 15), 1, 2)
    datetime.date(2024, 7, 15)
    >>> _payment_date(date(2024, 1, 15), 4, 4)
    datetime.date(2025, 1, 15)

    Days are clamped to the end of shorter months, but the anchor day is kept on later periods.

    >>> _payment_date(date(2024, 1, 31), 1, 12)
    datetime.date(2024, 2, 29)
    >>> _payment_date(date(2024, 1, 31), 2, 12)
    datetime.date(2024, 3, 31)
    '''

    return anchor + _MONTH * (period * 12 // periods_per_year)

def _to_decimal(value: t.Any) -> decimal.Decimal:
    '''
    Converts a record value into a decimal, going through its string representation.

    >>> _to_decimal(0.1)
    Decimal('0.1')
    >>> _to_decimal('1500.50')
    Decimal('1500.50')
    '''

    return value if isinstance(value, decimal.Decimal) else decimal.Decimal(str(value))

def _to_date(value: t.Any) -> datetime.date:
    '''
    Converts a record value into a date. Accepts dates, datetimes and ISO 8601 strings.

    >>> _to_date('2024-03-01T00:00:00+00:00')
    datetime.date(2024, 3, 1)
    '''

    if isinstance(value, datetime.datetime):
        return value.date()

    elif isinstance(value, datetime.date):
        return value

    return datetime.date.fromisoformat(str(value)[:10])
# }}}

# Public API. Main classes. {{{
@dataclasses.dataclass(frozen=True)
class BondTerms:
    '''
    The terms of a bond, as needed to build its payment schedule.

      • "principal", the nominal value.

      • "annual_rate", the nominal annual interest rate, as a percentage. TEA or TNA, the rate is used as given.

      • "term_years", the life of the bond, in years.

      • "emission_date", the period zero of the schedule.

      • "payment_frequency", one of annual, semiannual, quarterly or monthly. Other values fall back to semiannual.

      • "grace_period", one of none, partial or total. Only meaningful for the declining balance method.

      • "grace_period_count", how many initial periods are subject to the grace treatment.

      • "schedule_method", which schedule is authoritative for the bond: bullet or declining.
    '''

    principal: decimal.Decimal

    annual_rate: decimal.Decimal

    term_years: int

    emission_date: datetime.date

    payment_frequency: str = 'semiannual'

    grace_period: _GRACE_PERIOD = 'none'

    grace_period_count: int = 0

    schedule_method: _SCHEDULE_METHOD = 'bullet'

    def __post_init__(self):
        if self.payment_frequency not in _PERIODS_PER_YEAR:
            _LOG.warning(f'unrecognized payment frequency "{self.payment_frequency}" – falling back to {_DEFAULT_PERIODS_PER_YEAR} periods per year (semiannual)')

    @property
    def periods_per_year(self) -> int:
        return _periods_per_year(self.payment_frequency)

    @property
    def total_periods(self) -> int:
        return self.term_years * self.periods_per_year

    @property
    def period_rate(self) -> decimal.Decimal:
        return self.annual_rate / _100 / self.periods_per_year

    @property
    def maturity_date(self) -> datetime.date:
        return calculate_maturity_date(self.emission_date, self.term_years)

    @classmethod
    def from_record(cls, record: t.Mapping[str, t.Any]) -> 'BondTerms':
        '''
        Creates bond terms from a row of the bonds table.

        The table uses its own column names and Spanish enumerations. This routine translates both. Missing optional
        columns take the defaults of this class.

        >>> terms = BondTerms.from_record({
        ...     'nominal_value': 1000, 'interest_rate': 10, 'term_years': 2, 'emission_date': '2024-01-15',
        ...     'payment_frequency': 'semestral', 'grace_period': 'sin_gracia'
        ... })
        >>> terms.principal, terms.payment_frequency, terms.grace_period
        (Decimal('1000'), 'semiannual', 'none')
        '''

        kwa: t.Dict[str, t.Any] = {}

        kwa['principal'] = _to_decimal(record['nominal_value'])
        kwa['annual_rate'] = _to_decimal(record['interest_rate'])
        kwa['term_years'] = int(record['term_years'])
        kwa['emission_date'] = _to_date(record['emission_date'])

        if (frq := record.get('payment_frequency')) is not None:
            kwa['payment_frequency'] = _RECORD_FREQUENCY.get(frq, frq)

        if (grc := record.get('grace_period')) is not None:
            kwa['grace_period'] = _RECORD_GRACE_PERIOD.get(grc, grc)

        if record.get('grace_period_count') is not None:
            kwa['grace_period_count'] = int(record['grace_period_count'])

        if record.get('schedule_method') is not None:
            kwa['schedule_method'] = record['schedule_method']

        return cls(**kwa)

@dataclasses.dataclass
class ScheduleRow:
    '''
    An entry of a payment schedule.

      • "no" is the period number, starting at one.

      • "date" is the payment date.

      • "opening_balance" is the outstanding principal at the start of the period.

      • "coupon" is the interest due in the period.

      • "amortization" is the principal repaid in the period.

      • "total_flow" is the cash paid in the period, coupon plus amortization.

      • "closing_balance" is the outstanding principal at the end of the period.
    '''

    no: int = 0

    date: datetime.date = datetime.date.min

    opening_balance: decimal.Decimal = _0

    coupon: decimal.Decimal = _0

    amortization: decimal.Decimal = _0

    total_flow: decimal.Decimal = _0

    closing_balance: decimal.Decimal = _0

@dataclasses.dataclass
class YieldSummary:
    '''Aggregate interest and annualised yield of a schedule, for a given investment.'''

    total_interest: decimal.Decimal = _0

    total_to_receive: decimal.Decimal = _0

    annual_yield: decimal.Decimal = _0

@dataclasses.dataclass
class InvestmentSnapshot:
    '''
    The figures recorded when an investor opens a position on a bond.

    The expected return is computed once, at opening time, and stored as is. It is not recomputed per period.
    '''

    amount: decimal.Decimal = _0

    investment_date: datetime.date = datetime.date.min

    expected_return: decimal.Decimal = _0

    maturity_date: datetime.date = datetime.date.min
# }}}

# Public API. Payment schedules. {{{
@typeguard.typechecked
def get_declining_balance_schedule(terms: BondTerms, *, anchor_date: t.Optional[datetime.date] = None) -> t.List[ScheduleRow]:
    '''
    Generates a declining balance (annuity) payment schedule, with optional grace periods.

    Regular periods pay a level installment, computed with the annuity formula over the outstanding balance and the
    remaining periods. The first "terms.grace_period_count" periods are subject to the grace treatment.

      • Partial grace pays only the coupon over the balance. No principal is amortized.

      • Total grace pays nothing. The coupon is waived, not capitalised, so the balance is untouched.

    A grace count greater than, or equal to, the number of periods is valid. In that case the principal is never repaid
    and the schedule ends with the full balance outstanding. The grace count is ignored when the grace mode is "none".

    With a zero rate the annuity formula is undefined, and principal is amortized in equal parts over the remaining
    periods.

    Payment dates step from "anchor_date", which defaults to the emission date of the bond.
    '''

    _check_amounts(terms)

    if not terms.principal.is_finite() or not terms.annual_rate.is_finite():
        raise ValueError(f'principal and rate must be finite, got {terms.principal} and {terms.annual_rate}')

    if terms.grace_period not in ('partial', 'total') and terms.grace_period_count:
        _LOG.warning(f'the grace period count, {terms.grace_period_count}, is ignored without grace ("{terms.grace_period}")')

    ppy = terms.periods_per_year
    total = terms.total_periods
    rate = terms.period_rate
    grace = terms.grace_period_count if terms.grace_period in ('partial', 'total') else 0
    anchor = anchor_date or terms.emission_date
    balance = terms.principal
    rows = []

    for period in range(1, total + 1):
        if period <= grace and terms.grace_period == 'total':
            coupon = amort = flow = _0

        elif period <= grace:
            coupon = balance * rate
            amort = _0
            flow = coupon

        else:
            remaining = total - max(period - 1, grace)
            coupon = balance * rate

            # Straight line. The annuity formula is 0/0 here.
            if rate == _0 and remaining > 0:
                coupon = _0
                amort = balance / remaining
                flow = amort

            # The annuity of a single period is the balance plus its coupon.
            elif remaining == 1:
                amort = balance
                flow = amort + coupon

            elif remaining > 0:
                fac = calculate_interest_factor(rate, decimal.Decimal(remaining), percent=False)
                flow = balance * rate * fac / (fac - _1)
                amort = flow - coupon

                # Exactly the coupon plus the amortization.
                flow = coupon + amort

            else:
                amort = balance
                flow = amort + coupon

        row = ScheduleRow(no=period, date=_payment_date(anchor, period, ppy), opening_balance=balance, coupon=coupon)
        balance = max(_0, balance - amort)

        row.amortization = amort
        row.total_flow = flow
        row.closing_balance = balance

        rows.append(row)

    _LOG.debug(f'declining balance schedule with {len(rows)} periods, {grace} of grace ({terms.grace_period}), closing at {balance}')

    return rows

@typeguard.typechecked
def get_bullet_schedule(terms: BondTerms) -> t.List[ScheduleRow]:
    '''
    Generates a bullet payment schedule, the American method.

    Every period pays the same coupon over the full principal. The principal is repaid in full on the last period only,
    so the balance never declines before maturity. Grace period fields are ignored.

    Payment dates step from the emission date of the bond.
    '''

    _check_amounts(terms)

    if not terms.principal.is_finite() or not terms.annual_rate.is_finite():
        raise ValueError(f'principal and rate must be finite, got {terms.principal} and {terms.annual_rate}')

    ppy = terms.periods_per_year
    total = terms.total_periods
    coupon = terms.principal * terms.period_rate
    rows = []

    for period in range(1, total + 1):
        last = period == total
        row = ScheduleRow(no=period, date=_payment_date(terms.emission_date, period, ppy))

        row.opening_balance = terms.principal
        row.coupon = coupon
        row.amortization = terms.principal if last else _0
        row.total_flow = row.coupon + row.amortization
        row.closing_balance = _0 if last else terms.principal

        rows.append(row)

    _LOG.debug(f'bullet schedule with {len(rows)} periods, coupon of {coupon}')

    return rows

@typeguard.typechecked
def build(terms: BondTerms, *, anchor_date: t.Optional[datetime.date] = None) -> t.List[ScheduleRow]:
    '''
    Builds the authoritative payment schedule of a bond, according to "terms.schedule_method".

      • "bullet" calls "get_bullet_schedule". The anchor date is ignored, bullet dates always step from emission.

      • "declining" calls "get_declining_balance_schedule", passing the anchor date along.
    '''

    if terms.schedule_method == 'bullet':
        return get_bullet_schedule(terms)

    elif terms.schedule_method == 'declining':
        return get_declining_balance_schedule(terms, anchor_date=anchor_date)

    raise ValueError(f'unsupported schedule method "{terms.schedule_method}"')
# }}}

# Public API. Returns. {{{
@typeguard.typechecked
def calculate_expected_return(amount: decimal.Decimal, annual_rate: decimal.Decimal, term_years: int) -> decimal.Decimal:
    '''
    Calculates the expected return of an investment, simple interest over the full term.

    Independent of the payment frequency and of grace periods.

    >>> from decimal import Decimal
    >>>
    >>> calculate_expected_return(Decimal('5000'), Decimal('8'), 3)
    Decimal('1200.00')
    '''

    return amount * (annual_rate / _100) * term_years

@typeguard.typechecked
def get_yield_summary(schedule: t.Sequence[ScheduleRow], investment_amount: decimal.Decimal, term_years: int) -> YieldSummary:
    '''
    Summarises a schedule for an investment amount: total interest, total to receive and annual yield, in percent.

    The yield is a simple one, the total interest over the amount, per year of term.
    '''

    if investment_amount <= _0:
        raise ValueError(f'the investment amount, {investment_amount}, must be positive')

    if term_years <= 0:
        raise ValueError(f'the term, {term_years}, must be greater than, or equal to, one year')

    out = YieldSummary()

    out.total_interest = sum((x.coupon for x in schedule), _0)
    out.total_to_receive = investment_amount + out.total_interest
    out.annual_yield = out.total_interest / investment_amount / term_years * _100

    return out

@typeguard.typechecked
def open_investment(terms: BondTerms, amount: decimal.Decimal, investment_date: datetime.date) -> InvestmentSnapshot:
    '''
    Takes the snapshot of a new position on a bond: the expected return, and the maturity date of the bond.
    '''

    if amount <= _0:
        raise ValueError(f'the investment amount, {amount}, must be positive')

    out = InvestmentSnapshot(amount=amount, investment_date=investment_date)

    out.expected_return = calculate_expected_return(amount, terms.annual_rate, terms.term_years)
    out.maturity_date = terms.maturity_date

    return out
# }}}

# Public API. Helpers. {{{
@typeguard.typechecked
def calculate_maturity_date(emission_date: datetime.date, term_years: int) -> datetime.date:
    '''
    Calculates the maturity date of a bond, in calendar years from emission.

    >>> from datetime import date
    >>>
    >>> calculate_maturity_date(date(2024, 2, 29), 1)
    datetime.date(2025, 2, 28)
    '''

    return emission_date + _YEAR * term_years

@typeguard.typechecked
def calculate_days_to_maturity(emission_date: datetime.date, term_years: int, today: datetime.date) -> int:
    '''Returns the number of days from "today" to maturity. Negative after maturity.'''

    return (calculate_maturity_date(emission_date, term_years) - today).days

@typeguard.typechecked
def calculate_interest_factor(rate: decimal.Decimal, period: decimal.Decimal, percent: bool = True) -> decimal.Decimal:
    '''Calculates the interest factor given a rate and a period.'''

    if percent:
        rate = rate / _100

    if rate:
        return (_1 + rate) ** period

    else:
        return _1

@typeguard.typechecked
def calculate_compound_interest(principal: decimal.Decimal, annual_rate: decimal.Decimal, years: int, frequency: int = 12) -> decimal.Decimal:
    '''
    Calculates the future value of a principal, compounding a nominal annual rate "frequency" times a year.

    >>> from decimal import Decimal
    >>>
    >>> calculate_compound_interest(Decimal('1000'), Decimal('10'), 2, frequency=1)
    Decimal('1210.00')
    '''

    if frequency <= 0:
        raise ValueError(f'the compounding frequency, {frequency}, must be positive')

    return principal * calculate_interest_factor(annual_rate / frequency, decimal.Decimal(frequency * years))

@typeguard.typechecked
def calculate_simple_yield(principal: decimal.Decimal, interest: decimal.Decimal, months: int) -> decimal.Decimal:
    '''Calculates the annualised simple yield, in percent, of an interest earned over a number of months.'''

    if principal == _0:
        raise ValueError('principal must not be zero')

    if months <= 0:
        raise ValueError(f'the number of months, {months}, must be positive')

    return interest / principal * (decimal.Decimal(12) / months) * _100

@typeguard.typechecked
def validate_bond_terms(terms: BondTerms) -> None:
    '''
    Validates bond terms the way the bond creation form does.

    The schedule routines never call this function. They accept whatever they are given, falling back on defaults
    where they can. Call it before persisting a new bond.
    '''

    _check_amounts(terms)

    if not terms.principal.is_finite() or terms.principal <= _0:
        raise ValueError(f'the principal, {terms.principal}, must be greater than zero')

    if not terms.annual_rate.is_finite() or not _0 <= terms.annual_rate <= _100:
        raise ValueError(f'the annual rate, {terms.annual_rate}, must be between 0 and 100')

    if not _MIN_TERM_YEARS <= terms.term_years <= _MAX_TERM_YEARS:
        raise ValueError(f'the term, {terms.term_years}, must be between {_MIN_TERM_YEARS} and {_MAX_TERM_YEARS} years')

    if terms.payment_frequency not in _PERIODS_PER_YEAR:
        raise ValueError(f'unsupported payment frequency "{terms.payment_frequency}"')

    if terms.grace_period not in t.get_args(_GRACE_PERIOD):
        raise ValueError(f'unsupported grace period "{terms.grace_period}"')

    if terms.schedule_method not in t.get_args(_SCHEDULE_METHOD):
        raise ValueError(f'unsupported schedule method "{terms.schedule_method}"')

    if terms.grace_period_count < 0:
        raise ValueError(f'the grace period count, {terms.grace_period_count}, must not be negative')

    if terms.grace_period_count > terms.total_periods:
        raise ValueError(f'the grace period count, {terms.grace_period_count}, exceeds the {terms.total_periods} periods of the bond')

@typeguard.typechecked
def format_schedule(schedule: t.Sequence[ScheduleRow]) -> t.List[t.List[str]]:
    '''
    Formats a schedule for display.

    Returns one list of strings per row: period, ISO date, opening balance, coupon, amortization, total flow and closing
    balance. Money is rounded to cents, half up.
    '''

    out = []

    for x in schedule:
        val = [x.opening_balance, x.coupon, x.amortization, x.total_flow, x.closing_balance]

        out.append([str(x.no), x.date.isoformat()] + [str(_Q(y)) for y in val])

    return out
# }}}

# Log current version info.
_LOG.info(f'Bondcore version {__version__} initialized')

if __name__ == '__main__':
    import doctest

    doctest.testmod()

# vi:fdm=marker:
