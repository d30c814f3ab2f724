#!/usr/bin/env python3
#
# Copyright (C) Inco - All Rights Reserved.
#

'''Bondcore CLI.'''

# Python.
import csv
import sys
import json
import locale
import typing
import decimal
import logging
import datetime
import textwrap
import functools
import dataclasses

# Libs.
import sh2py
import tabulate

# Bondcore.
import bondcore

# Print helper.
_PR = functools.partial(print, file=sys.stderr, flush=True)

# Options for the schedule table.
_SCHEDULE_OPTS = {
    'headers': ['Nº', 'Date', 'Opening Bal.', 'Coupon', 'Amt.', 'Total Flow', 'Closing Bal.'],
    'colalign': ('right', 'center', 'right', 'right', 'right', 'right', 'right')
}

# Options for the returns table.
_RETURNS_OPTS = {
    'headers': ['Item', 'Value'],
    'colalign': ('left', 'right')
}

# A logger for this module.
_LOG = logging.getLogger('bondcore_cli')

# Locale of the issuers, Peru.
_LOCALE = 'es_PE.UTF-8'

# Affirmative answers.
_YES = ['s', 'si', 'sí', 'y', 'yes']

def _money(value: decimal.Decimal) -> str:
    try:
        return locale.currency(value, symbol=False, grouping=True)

    except ValueError:  # The "C" locale has no currency conventions.
        return f'{bondcore._Q(value):,}'

def _parse_start_term(inicio_plazo: str) -> typing.Tuple[datetime.date, int]:
    tup = inicio_plazo.split('+')

    if len(tup) != 2:
        raise ValueError(f'expected "D+N", an ISO 8601 date and a term in years, got "{inicio_plazo}"')

    return datetime.date.fromisoformat(tup[0]), int(tup[1])

def ayuda(command=''):
    '''
    Supported commands:

    - "genera_cronograma", generates the payment schedule of a bond;
    - "genera_rendimiento", calculates the expected return and yield of an investment.
    '''

    dic = globals()

    if command and command in dic and dic[command].__doc__ and command != 'ayuda':
        _PR(textwrap.dedent(dic[command].__doc__))

    else:
        _PR(textwrap.dedent(str(ayuda.__doc__)))

    return sh2py.HALT

def genera_cronograma(metodo, principal, tasa, inicio_plazo, **kwargs):
    r'''
    Generates the payment schedule of a bond.

    Parameters:

      • "metodo", the schedule method. Must be "bullet" (American method) or "declining" (annuity over a declining
        balance, with grace periods);

      • "principal", the nominal value of the bond;

      • "tasa", the nominal annual interest rate, in percent;

      • "inicio_plazo", a value in the format "D+N", where D is the ISO 8601 emission date and N is the term, in
        years.

    Optional parameters:

      • "frecuencia", payment frequency. Can be "annual", "semiannual", "quarterly" or "monthly". Defaults to
        semiannual;

      • "gracia", grace period mode for the "declining" method. Can be "none", "partial" or "total";

      • "periodos_gracia", number of grace periods;

      • "ancla", anchor date for the "declining" method. Defaults to the emission date;

      • "formato", the output format. Besides the formats supported by the Python Tabulate library, see
        "http://github.com/astanin/python-tabulate#table-format", this routine supports "json", "csv" and "raw".

    Example, a five year bond paying quarterly coupons.

        bondcore genera_cronograma bullet 100000 7.5 2024-03-15+5 frecuencia=quarterly
    '''

    if kwargs.get('debug', '').lower() in _YES:
        logging.basicConfig(level=logging.DEBUG)

    # 0. Validate.
    if metodo not in typing.get_args(bondcore._SCHEDULE_METHOD):
        _PR(f'Error: method "{metodo}" not supported.')

        return sh2py.HALT

    # 1. Assemble the Bondcore call.
    kwa: typing.Dict[str, typing.Any] = {}

    kwa['principal'] = decimal.Decimal(principal)
    kwa['annual_rate'] = decimal.Decimal(tasa)
    kwa['emission_date'], kwa['term_years'] = _parse_start_term(inicio_plazo)
    kwa['payment_frequency'] = kwargs.get('frecuencia', 'semiannual')
    kwa['grace_period'] = kwargs.get('gracia', 'none')
    kwa['grace_period_count'] = int(kwargs.get('periodos_gracia', '0'))
    kwa['schedule_method'] = metodo

    terms = bondcore.BondTerms(**kwa)
    anchor = datetime.date.fromisoformat(kwargs['ancla']) if 'ancla' in kwargs else None
    rows = bondcore.build(terms, anchor_date=anchor)

    # 2. Execute and format the results.
    if (fmt := kwargs.get('formato', 'fancy_outline')) in tabulate.tabulate_formats:
        data = []

        tabulate.PRESERVE_WHITESPACE = True  # Force Tabulate to preserve spaces (http://github.com/astanin/python-tabulate#text-formatting).

        for x, y in zip(rows, bondcore.format_schedule(rows)):
            out = []

            out.append(x.no)
            out.append(y[1])
            out.extend(_money(decimal.Decimal(z)) for z in y[2:])

            data.append(out)

        _PR()
        _PR(tabulate.tabulate(data, tablefmt=fmt, **_SCHEDULE_OPTS))
        _PR()

    elif fmt == 'json':
        print(json.dumps(bondcore.format_schedule(rows)))

    elif fmt == 'csv':
        dev = csv.DictWriter(sys.stdout, [x.name for x in dataclasses.fields(bondcore.ScheduleRow)])

        dev.writeheader()

        for x in rows:
            dev.writerow(dataclasses.asdict(x))

    elif fmt == 'raw':
        for row in rows:
            print(row)

    else:
        _PR(f'Error, format "{fmt}" not supported.')

        return sh2py.HALT

def genera_rendimiento(monto, tasa, plazo, **kwargs):
    r'''
    Calculates the expected return of an investment, and the yield summary of the bond schedule.

    Parameters:

      • "monto", the invested amount;

      • "tasa", the nominal annual interest rate, in percent;

      • "plazo", the term, in years.

    Optional parameters:

      • "metodo", the schedule method used for the yield summary, "bullet" or "declining". Defaults to bullet;

      • "frecuencia", payment frequency. Defaults to semiannual;

      • "inicio", the emission date. Defaults to today;

      • "formato", a Tabulate format, or "json".

    Example.

        bondcore genera_rendimiento 5000 8 3 frecuencia=monthly
    '''

    if kwargs.get('debug', '').lower() in _YES:
        logging.basicConfig(level=logging.DEBUG)

    kwa: typing.Dict[str, typing.Any] = {}

    kwa['principal'] = decimal.Decimal(monto)
    kwa['annual_rate'] = decimal.Decimal(tasa)
    kwa['term_years'] = int(plazo)
    kwa['emission_date'] = datetime.date.fromisoformat(kwargs['inicio']) if 'inicio' in kwargs else datetime.date.today()
    kwa['payment_frequency'] = kwargs.get('frecuencia', 'semiannual')
    kwa['schedule_method'] = kwargs.get('metodo', 'bullet')

    terms = bondcore.BondTerms(**kwa)

    try:
        bondcore.validate_bond_terms(terms)

    except ValueError as exc:
        _PR(f'Error: {exc}.')

        return sh2py.HALT

    inv = bondcore.open_investment(terms, terms.principal, terms.emission_date)
    smr = bondcore.get_yield_summary(bondcore.build(terms), terms.principal, terms.term_years)

    if (fmt := kwargs.get('formato', 'fancy_outline')) in tabulate.tabulate_formats:
        data = []

        data.append(['Expected return', _money(bondcore._Q(inv.expected_return))])
        data.append(['Maturity', inv.maturity_date.isoformat()])
        data.append(['Total interest', _money(bondcore._Q(smr.total_interest))])
        data.append(['Total to receive', _money(bondcore._Q(smr.total_to_receive))])
        data.append(['Annual yield %', locale.str(round(smr.annual_yield, 5))])  # pyright: ignore[reportArgumentType]

        _PR()
        _PR(tabulate.tabulate(data, tablefmt=fmt, **_RETURNS_OPTS))
        _PR()

    elif fmt == 'json':
        dic = {}

        dic['expected_return'] = str(inv.expected_return)
        dic['maturity_date'] = inv.maturity_date.isoformat()
        dic['total_interest'] = str(smr.total_interest)
        dic['total_to_receive'] = str(smr.total_to_receive)
        dic['annual_yield'] = str(smr.annual_yield)

        print(json.dumps(dic))

    else:
        _PR(f'Error, format "{fmt}" not supported.')

        return sh2py.HALT

cli = sh2py.CommandLineMapper()

cli.add(ayuda)
cli.add(genera_cronograma)
cli.add(genera_rendimiento)

try:
    locale.setlocale(locale.LC_ALL, _LOCALE)

except locale.Error:
    _LOG.warning(f'locale "{_LOCALE}" is not available, currency values will use the default locale')

    locale.setlocale(locale.LC_ALL, '')

if cli.run() is sh2py.HALT:
    exit(1)

# vi:fdm=marker:
