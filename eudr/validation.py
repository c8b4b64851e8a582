# This program is part of the eudr package.

# Copyright (C) 2022-present
# Kevin Crouse, The Philadelphia District Attorney's Office, City of Philadelphia, PA.

# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/gpl-3.0.en.html>

import math
import types

from .exceptions import ValidationError, EUDR_ERROR_CODES
from .response import as_list

# HS headings for which IMPORT/EXPORT must declare a supplementary unit, and which one
HS_CODES_WITH_SUPPLEMENTARY_UNITS = types.MappingProxyType({
    '4011': 'NAR',
    '4013': 'NAR',
    '4104': 'NAR',
    '4403': 'MTQ',
    '4406': 'MTQ',
    '4408': 'MTQ',
    '4410': 'MTQ',
    '4411': 'MTQ',
    '4412': 'MTQ',
    '4413': 'MTQ',
    '4701': 'KSD',
    '4702': 'KSD',
    '4704': 'KSD',
    '4705': 'KSD',
})

VALID_SUPPLEMENTARY_UNIT_QUALIFIERS = frozenset(('KSD', 'MTK', 'MTQ', 'MTR', 'NAR', 'NPR'))

ACTIVITY_TYPES = ('IMPORT', 'EXPORT', 'DOMESTIC', 'TRADE')
BORDER_ACTIVITIES = ('IMPORT', 'EXPORT')

PERCENTAGE_MIN = 0
PERCENTAGE_MAX = 25

PREFIX = 'EUDR_COMMODITIES_DESCRIPTOR_'


def get_required_supplementary_unit(hs_heading):
    """ The supplementary unit qualifier an HS heading requires, or None.

    The full code is looked up first, then its first four digits.
    """
    if not hs_heading:
        return(None)
    hs_heading = str(hs_heading)
    if hs_heading in HS_CODES_WITH_SUPPLEMENTARY_UNITS:
        return(HS_CODES_WITH_SUPPLEMENTARY_UNITS[hs_heading])
    if len(hs_heading) >= 4:
        return(HS_CODES_WITH_SUPPLEMENTARY_UNITS.get(hs_heading[:4]))
    return(None)


def _present(value):
    return(value is not None and value != '')


def _quantity(value):
    """ A quantity of zero is the same as no quantity. """
    if not _present(value):
        return(False)
    try:
        return(float(value) != 0)
    except (TypeError, ValueError):
        return(True)


def _violation(code, message, index, field):
    code = PREFIX + code
    return(ValidationError(
        message or EUDR_ERROR_CODES.get(code),
        error_code = code,
        field = f"commodities[{index}].descriptors.goodsMeasure.{field}",
    ))


def validate(statement):
    """ Check a statement against the unit-of-measure rules before it is sent.

    Commodities are checked in order and the first violation is returned; nothing
    is aggregated.

    Args:
        statement: The statement dict, keyed by the EUDR element names.
    Returns:
        A ValidationError describing the first violation, or None if the statement passes.
    """
    if not isinstance(statement, dict):
        return(ValidationError("A statement is required", error_code = 'REQUIRED_FIELD_MISSING', field = 'statement'))

    activity_type = statement.get('activityType')
    if not _present(activity_type):
        return(ValidationError("activityType is required", error_code = 'REQUIRED_FIELD_MISSING', field = 'activityType'))
    if activity_type not in ACTIVITY_TYPES:
        return(ValidationError(
            f"activityType must be one of {', '.join(ACTIVITY_TYPES)}, not {activity_type}",
            error_code = 'EUDR_ACTIVITY_TYPE_NOT_COMPATIBLE',
            field = 'activityType',
        ))

    for index, commodity in enumerate(as_list(statement.get('commodities'))):
        measure, error = _goods_measure(commodity, index)
        if error:
            return(error)
        if not measure:
            continue

        if activity_type in BORDER_ACTIVITIES:
            error = _check_border_measure(measure, commodity.get('hsHeading'), activity_type, index)
        else:
            error = _check_domestic_measure(measure, index)

        if error:
            return(error)

    return(None)


def _goods_measure(commodity, index):
    """ The commodity's goodsMeasure, or the INVALID_STRUCTURE error for whatever isn't a mapping on the way to it. """
    path = f"commodities[{index}]"
    node = commodity
    for key in (None, 'descriptors', 'goodsMeasure'):
        if key:
            node = node.get(key)
            path = f"{path}.{key}"
        if not _present(node):
            return(None, None)
        if not isinstance(node, dict):
            return(None, ValidationError(
                f"{path} must be a mapping, not {type(node).__name__}",
                error_code = 'INVALID_STRUCTURE',
                field = path,
            ))
    return(node, None)


def _check_border_measure(measure, hs_heading, activity_type, index):
    """ IMPORT / EXPORT """
    if _present(measure.get('percentageEstimationOrDeviation')):
        return(_violation(
            'PERCENTAGE_ESTIMATION_NOT_ALLOWED',
            f"Percentage estimate or deviation is not allowed for {activity_type}.",
            index, 'percentageEstimationOrDeviation',
        ))

    if not _quantity(measure.get('netWeight')):
        return(_violation(
            'NET_MASS_EMPTY',
            f"Net Mass is mandatory for {activity_type} activity.",
            index, 'netWeight',
        ))

    units = measure.get('supplementaryUnit')
    qualifier = measure.get('supplementaryUnitQualifier')
    required = get_required_supplementary_unit(hs_heading)

    if required:
        if not _quantity(units) or not _present(qualifier):
            return(_violation(
                'SUPPLEMENTARY_UNIT_MISSING',
                f"HS heading {hs_heading} requires a supplementary unit of type {required} for {activity_type}.",
                index, 'supplementaryUnit',
            ))
        if qualifier != required:
            return(_violation(
                'SUPPLEMENTARY_UNIT_QUALIFIER_NOT_COMPATIBLE',
                f"HS heading {hs_heading} requires supplementary unit type {required}, not {qualifier}.",
                index, 'supplementaryUnitQualifier',
            ))
    elif _quantity(units) or _present(qualifier):
        return(_violation(
            'SUPPLEMENTARY_UNIT_NOT_ALLOWED',
            f"Supplementary units are not applicable to HS heading {hs_heading} for {activity_type}.",
            index, 'supplementaryUnit',
        ))

    return(None)


def _check_domestic_measure(measure, index):
    """ DOMESTIC / TRADE """
    percentage = measure.get('percentageEstimationOrDeviation')
    if _present(percentage):
        try:
            value = float(percentage)
        except (TypeError, ValueError):
            value = math.nan
        if math.isnan(value) or not (PERCENTAGE_MIN <= value <= PERCENTAGE_MAX):
            return(_violation(
                'PERCENTAGE_ESTIMATION_INVALID',
                f"Percentage estimate or deviation must be between {PERCENTAGE_MIN} and {PERCENTAGE_MAX}, got {percentage}.",
                index, 'percentageEstimationOrDeviation',
            ))

    units = measure.get('supplementaryUnit')
    qualifier = measure.get('supplementaryUnitQualifier')

    if _present(qualifier) and qualifier not in VALID_SUPPLEMENTARY_UNIT_QUALIFIERS:
        return(_violation(
            'SUPPLEMENTARY_UNIT_QUALIFIER_INVALID',
            f"Invalid supplementary unit type {qualifier}; expected one of {', '.join(sorted(VALID_SUPPLEMENTARY_UNIT_QUALIFIERS))}.",
            index, 'supplementaryUnitQualifier',
        ))

    if _present(qualifier) and not _quantity(units):
        return(_violation('NUMBER_OF_UNITS_MISSING', None, index, 'supplementaryUnit'))

    if _quantity(units) and not _present(qualifier):
        return(_violation('SUPPLEMENTARY_UNIT_MISSING', None, index, 'supplementaryUnitQualifier'))

    if not _quantity(measure.get('netWeight')) and not _quantity(units):
        return(_violation('QUANTITY_MISSING', None, index, 'netWeight'))

    return(None)
