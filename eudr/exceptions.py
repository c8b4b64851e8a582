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

import json
import logging
import re
import types

import requests

logger = logging.getLogger(__name__)

__all__ = [
    'error_factory',
    'parse_fault_errors',
    'EUDR_ERROR_CODES',
    'EUDRError',
    'ConfigurationError',
    'ValidationError',
    'NetworkError',
    'ProtocolError',
    'AuthenticationError',
    'AuthorizationError',
    'NotFound',
    'BusinessRuleServerError',
    'UnknownServerError',
]

# Symbolic codes the EUDR services return in the Fault detail, with the text
# from the EUDR business rules documentation.
EUDR_ERROR_CODES = types.MappingProxyType({
    # user and webservice profile
    'EUDR_WEBSERVICE_USER_NOT_EUDR_OPERATOR': 'The user is not registered in the EUDR domain as operator.',
    'EUDR_WEBSERVICE_USER_FROM_MANY_OPERATOR': 'The user belongs to more than one operator.',
    'EUDR_WEBSERVICE_USER_ACTIVITY_NOT_ALLOWED': 'The user is requesting to use an EUDR role that is not valid for the operator profile.',

    # operator
    'EUDR_OPERATOR_EORI_FOR_ACTIVITY_MISSING': 'The operator must have an EU EORI if the activity is IMPORT or EXPORT',
    'EUDR_BEHALF_OPERATOR_NOT_PROVIDED': 'For authorized representative role only: The on-behalf-of (represented) operator must be provided.',
    'EUDR_BEHALF_OPERATOR_CITY_POSTALCODE_EMPTY_OR_INVALID': 'For authorized representative role only: The city and postal code of the on-behalf-of (represented) operator must be provided and valid.',
    'EUDR_ACTIVITY_TYPE_NOT_COMPATIBLE': 'The selected activity is not allowed for the operator.',
    'EUDR_ACTIVITY_TYPE_NOT_ALLOWED_FOR_NON_EU_OPERATOR': 'Non-EU operators must select Import activity.',

    # commodities
    'EUDR_COMMODITIES_HS_CODE_INVALID': 'The HS-Code of a commodity is invalid',
    'EUDR_COMMODITIES_DESCRIPTOR_NET_MASS_EMPTY': 'Net Mass is mandatory for IMPORT or EXPORT activity.',
    'EUDR_COMMODITIES_DESCRIPTOR_QUANTITY_MISSING': 'At least one unit of measure quantity must be provided.',
    'EUDR_COMMODITITY_PRODUCER_COUNTRY_CODE_INVALID': 'The ISO 2 country code provided for the producer is invalid.',

    # geolocation
    'EUDR_COMMODITIES_PRODUCERS_EMPTY': 'No producers were provided.',
    'EUDR_COMMODITIES_PRODUCER_GEO_EMPTY': 'No geolocation was provided and there is no referenced DDS.',
    'EUDR_COMMODITIES_PRODUCER_GEO_INVALID': 'An invalid GEOjson file was provided for geolocation.',
    'EUDR_COMMODITIES_PRODUCER_GEO_LATITUDE_INVALID': 'Latitude of points or vertices must be between -90 and +90.',
    'EUDR_COMMODITIES_PRODUCER_GEO_LONGITUDE_INVALID': 'Longitude of points or vertices must be between -180 and +180.',
    'EUDR_COMMODITIES_PRODUCER_GEO_POLYGON_INVALID': 'Each polygon must have at least 4 non-aligned points and cannot have intersections between sides.',
    'EUDR_COMMODITIES_PRODUCER_GEO_INVALID_GEOMETRY': 'Each polygon must have at least 4 non-aligned points and cannot have intersections between sides.',
    'EUDR_COMMODITIES_PRODUCER_GEO_AREA_INVALID': 'An area for a point must be a number and, for non-cattle commodities, it should be between 0,0001 and 4',
    'EUDR_MAXIMUM_GEO_SIZE_REACHED': 'The maximum DDS file size has been exceeded',

    # referenced statements
    'EUDR_REFERENCED_STATEMENT_NOT_FOUND': 'At least one referenced DDS is invalid (Referenced Number or Verification Number) or does not exist.',
    'EUDR_MAXIMUM_REFERENCED_DDS_REACHED': 'The maximum number of referenced DDS is exceeded.',

    # goods measure
    'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_MISSING': 'Supplementary units are provided but the supplementary unit qualifier is missing.',
    'EUDR_COMMODITIES_DESCRIPTOR_NUMBER_OF_UNITS_MISSING': 'A supplementary unit qualifier is provided but the supplementary units are missing.',
    'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_NOT_ALLOWED': 'Supplementary Unit not allowed for import and export where the supplementary unit is not applicable.',
    'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_QUALIFIER_INVALID': 'Invalid Supplementary Unit type.',
    'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_QUALIFIER_NOT_COMPATIBLE': 'Supplementary Unit type not applicable.',
    'EUDR_COMMODITIES_DESCRIPTOR_PERCENTAGE_ESTIMATION_MISSING': 'Net Mass Percentage estimate or deviation is mandatory for Domestic or Trade activities.',
    'EUDR_COMMODITIES_DESCRIPTOR_PERCENTAGE_ESTIMATION_NOT_ALLOWED': 'Percentage estimate or deviation not allowed for Import/Export.',
    'EUDR_COMMODITIES_DESCRIPTOR_PERCENTAGE_ESTIMATION_INVALID': 'Percentage estimate or deviation lower than 0 or higher than 50.',

    # species
    'EUDR_COMMODITIES_SPECIES_INFORMATION_COMMON_NAME_EMPTY': 'The common name is mandatory if the commodity contains Annex I wood (timber) products.',
    'EUDR_COMMODITIES_SPECIES_INFORMATION_SCIENTIFIC_NAME_EMPTY': 'The scientific name is mandatory if the commodity contains Annex I wood (timber) products.',

    # amend / retract
    'EUDR_API_AMEND_ACTIVITY_TYPE_CHANGE_NOT_ALLOWED': 'The existing DDS activity cannot be modified.',
    'EUDR_API_AMEND_OR_WITHDRAW_DDS_NOT_POSSIBLE': 'The user cannot amend a DDS if it is referenced in another DDS or if the amend cutoff date has expired.',
    'EUDR_API_AMEND_NOT_ALLOWED_FOR_STATUS': 'The user can only amend when the DDS is in status Available.',
    'EUDR_API_AMEND_OR_WITHDRAW_NOT_ALLOWED_FOR_STATUS': 'The user can only retract a DDS in status SUBMITTED or AVAILABLE.',
    'EUDR_API_NO_DDS': 'No DDS corresponding to the provided UUID.',

    # schema data types
    'EUDR_DATA_TYPE_VALIDATION_ERROR': 'Data type validation error - the provided value does not match the expected format.',
})

# codes the server reports under a different name than the documented one
ERROR_CODE_ALIASES = types.MappingProxyType({
    'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_QUALIFIER_MISSING': 'EUDR_COMMODITIES_DESCRIPTOR_SUPPLEMENTARY_UNIT_MISSING',
})

AUTHENTICATION_MARKERS = ('UnauthenticatedException', 'Authentication', 'Unauthorized')
AUTHORIZATION_CODES = (
    'EUDR_WEBSERVICE_USER_NOT_EUDR_OPERATOR',
    'EUDR_WEBSERVICE_USER_FROM_MANY_OPERATOR',
    'EUDR_WEBSERVICE_USER_ACTIVITY_NOT_ALLOWED',
)
NOT_FOUND_MARKERS = ('EUDR-API-NO-DDS', 'EUDR_API_NO_DDS', 'EUDR-WEBSERVICE-STATEMENT-NOT-FOUND', 'EUDR_WEBSERVICE_STATEMENT_NOT_FOUND')
VERIFICATION_NUMBER_MARKERS = ('EUDR-VERIFICATION-NUMBER-INVALID', 'EUDR_VERIFICATION_NUMBER_INVALID')
SCHEMA_MARKERS = ('BusinessRulesValidationException', 'SAXParseException', 'cvc-')

datatype_re = re.compile(r"cvc-datatype-valid\.1\.2\.1:\s*'([^']*)'\s*is not a valid value for\s*'([^']+)'")
cvc_re = re.compile(r'(cvc-[^\n]*)')
element_re = re.compile(r"element '(?:[^:']+:)?(\w+)'")
namespaced_element_re = re.compile(r'\{"([^"]+)":(\w+)\}')


def error_factory(http_response = None, exception = None):
    """ Return the EUDRError that describes a failed request.

    This never raises; whatever it cannot make sense of comes back as an `UnknownServerError`.

    Args:
        http_response: The `requests` response, when the server answered.
        exception: The transport exception, when it did not.
    Returns:
        An instance of an `EUDRError` subclass for the caller to raise.
    """
    try:
        if http_response is None:
            return(_network_error(exception))
        return(_classify_response(http_response))
    except Exception as err:
        logger.exception("Could not classify the failed request")
        return(UnknownServerError(f"Unclassifiable failure: {err}", http_response = http_response))


def _network_error(exception):
    if isinstance(exception, requests.exceptions.Timeout):
        message = f"The request timed out: {exception}"
    elif isinstance(exception, requests.exceptions.SSLError):
        message = f"TLS negotiation with the endpoint failed: {exception}"
    elif exception is not None:
        message = f"No response received: {exception}"
    else:
        message = "No response received"
    return(NetworkError(message))


def _classify_response(http_response):
    from .response import SOAPResponse

    status = http_response.status_code
    try:
        obj = SOAPResponse(http_response, allow_failure = True)
        fault = obj.fault
    except ProtocolError:
        obj = None
        fault = None

    if fault is None:
        # not a SOAP fault, so all we have to go on is the http status
        if status == 401:
            return(AuthenticationError(http_response = http_response, soap_response = obj))
        if status == 403:
            return(AuthorizationError(http_response = http_response, soap_response = obj))
        return(UnknownServerError(
            f"Request failed with HTTP {status} {http_response.reason or ''}".strip(),
            error_code = 'HTTP_ERROR',
            http_response = http_response,
            soap_response = obj,
        ))

    text = http_response.text or ''
    faultstring = fault.faultstring or ''
    errors = parse_fault_errors(fault, text)
    codes = [e['code'] for e in errors]
    known = [e for e in errors if e['code'] in EUDR_ERROR_CODES]
    kwargs = dict(errors = errors, http_response = http_response, soap_response = obj)

    if status == 401 or (status == 500 and any(m in text for m in AUTHENTICATION_MARKERS)):
        return(AuthenticationError(**kwargs))

    if any(c in AUTHORIZATION_CODES for c in codes) or 'not authorized' in faultstring.lower():
        message = known[0]['message'] if known else faultstring
        return(AuthorizationError(message, **kwargs))

    if any(m in text for m in NOT_FOUND_MARKERS):
        return(NotFound(**kwargs))

    if any(m in text for m in VERIFICATION_NUMBER_MARKERS):
        return(BusinessRuleServerError(
            "The verification number is invalid.",
            error_code = 'INVALID_VERIFICATION_NUMBER',
            **kwargs
        ))

    schema_fault = any(m in text for m in SCHEMA_MARKERS) or ('S:Client' in (fault.faultcode or '') and 'facet-valid' in text)
    if known or schema_fault:
        first = known[0] if known else (errors[0] if errors else None)
        message = first['message'] if first else faultstring
        return(BusinessRuleServerError(message, field = first['field'] if first else None, **kwargs))

    return(UnknownServerError(
        faultstring or "The server returned a SOAP fault without a faultstring",
        error_code = codes[0] if codes else 'SOAP_FAULT',
        **kwargs
    ))


def parse_fault_errors(fault, text = ''):
    """ Pull the structured error entries out of a SOAPFault.

    Returns a list of dicts with `code`, `message` and `field`. Schema validation
    faults from the server's XML parser produce a single entry; business rule
    faults produce one entry per `Error` element in the detail. When there is no
    detail, `text` is scanned for any known code.
    """
    faultstring = fault.faultstring or ''

    if 'SAXParseException' in faultstring or 'cvc-' in faultstring:
        m = datatype_re.search(faultstring)
        if m:
            value, expected = m.groups()
            return([{
                'code': 'EUDR_DATA_TYPE_VALIDATION_ERROR',
                'message': data_type_message(value, expected),
                'field': None,
                'invalid_value': value,
                'expected_type': expected,
            }])
        m = cvc_re.search(faultstring)
        if m:
            message = m.group(1).strip()
            field = None
            em = element_re.search(message) or namespaced_element_re.search(message)
            if em:
                field = em.group(em.lastindex)
            return([{'code': 'XML_VALIDATION_ERROR', 'message': message, 'field': field}])

    errors = []
    for entry in fault.errors:
        code = (entry.get('ID') or '').replace('-', '_')
        code = ERROR_CODE_ALIASES.get(code, code)
        errors.append({
            'code': code,
            'message': EUDR_ERROR_CODES.get(code, entry.get('Message')),
            'field': entry.get('Field'),
            'server_message': entry.get('Message'),
        })
    if errors:
        return(errors)

    for code, message in EUDR_ERROR_CODES.items():
        if code in text:
            return([{'code': code, 'message': message, 'field': None}])

    return([])


def data_type_message(value, expected):
    """ A readable explanation of a `cvc-datatype-valid` failure. """
    expected_type = expected.lower()
    if expected_type == 'integer':
        if '.' in value:
            return(f"The value '{value}' contains decimal places but must be a whole number (integer).")
        return(f"The value '{value}' is not a valid integer. Please provide a whole number.")
    elif expected_type == 'decimal':
        return(f"The value '{value}' is not a valid decimal number. Please check the format.")
    elif expected_type == 'boolean':
        return(f"The value '{value}' is not a valid boolean. Please use 'true' or 'false'.")
    elif expected_type == 'date':
        return(f"The value '{value}' is not a valid date format. Please use ISO 8601 format (YYYY-MM-DD).")
    elif expected_type == 'datetime':
        return(f"The value '{value}' is not a valid datetime format. Please use ISO 8601 format (YYYY-MM-DDTHH:mm:ss).")
    return(f"The value '{value}' is not valid for the expected type '{expected}'.")


class EUDRError(Exception):
    """ The EUDR Error base class, for all EUDR-related errors.

    Every error carries the same structured description, so callers can branch on
    `error_code` and `http_status` instead of on the exception type. Not all
    attributes are available in all error contexts.

    Attributes:
        message: The error message
        error_code: Stable symbolic code, e.g. `AUTHENTICATION_FAILED` or `EUDR_COMMODITIES_DESCRIPTOR_NET_MASS_EMPTY`
        http_status: The (possibly reclassified) http status, or None when no response was received
        field: The offending field, when known
        retryable: True if resending a freshly signed request may succeed
        errors: The individual entries parsed from a SOAP fault detail
        http_response: The raw response from an http request via the `requests` module
        soap_response: The SOAPResponse object associated with the error
        data: Freeform data associated with the error
    """

    error_code = 'EUDR_ERROR'
    http_status = None
    retryable = False
    default_message = "A generic EUDR error occurred (but no more information was provided)"

    def __init__(
        self,
        message = None,
        error_code = None,
        http_status = None,
        field = None,
        retryable = None,
        errors = None,
        data = None,
        http_response = None,
        soap_response = None,
    ):
        self.http_response = http_response
        self.soap_response = soap_response
        self.field = field
        self.errors = errors or []
        self.data = data

        if error_code:
            self.error_code = error_code
        if retryable is not None:
            self.retryable = retryable
        if http_status is not None:
            self.http_status = http_status
        elif self.http_status is None and http_response is not None:
            self.http_status = getattr(http_response, 'status_code', None)

        super().__init__(message or self.default_message)

    @property
    def message(self):
        return(self.args[0])

    @message.setter
    def message(self, value):
        self.args = (value,)

    def to_dict(self):
        """ The error as a plain structure. """
        return({
            'httpStatus': self.http_status,
            'errorCode': self.error_code,
            'message': self.message,
            'field': self.field,
            'retryable': self.retryable,
        })

    def __repr__(self):
        return(f"{type(self).__name__}({json.dumps(self.to_dict(), sort_keys = True)})")


class ConfigurationError(EUDRError):
    """ A required setting is missing or unusable. Raised before anything is sent. """
    error_code = 'CONFIGURATION_ERROR'


class ValidationError(EUDRError):
    """ The request breaks a business rule that can be checked locally, so it was never sent. """
    error_code = 'VALIDATION_ERROR'
    http_status = 400


class NetworkError(EUDRError):
    """ No response was received: connection failure, TLS failure or timeout. """
    error_code = 'NETWORK_ERROR'
    retryable = True


class ProtocolError(EUDRError):
    """ The response could not be parsed, or was not shaped like the expected SOAP message. """
    error_code = 'PROTOCOL_ERROR'


class AuthenticationError(EUDRError):
    """ The server rejected the credentials in the security header. """
    error_code = 'AUTHENTICATION_FAILED'
    http_status = 401
    default_message = "Authentication failed, which usually is an issue with the username, the webservice authentication key or the client id. Also verify that the system clock is correct, as the security timestamp expires quickly."


class AuthorizationError(EUDRError):
    """ The user is authenticated but not allowed to perform the operation. """
    error_code = 'AUTHORIZATION_FAILED'
    http_status = 403
    default_message = "The user is not authorized to perform this operation."


class NotFound(EUDRError):
    """ The server looked for the statement and found nothing. """
    error_code = 'DDS_NOT_FOUND'
    http_status = 404
    default_message = "No DDS found for the provided identifiers."


class BusinessRuleServerError(EUDRError):
    """ The server rejected the request on schema or business rule grounds. """
    error_code = 'BUSINESS_RULES_VALIDATION'
    http_status = 400
    default_message = "The request was rejected by the EUDR business rules."

    @property
    def eudr_error_code(self):
        """ The first documented EUDR code in the fault detail, if any. """
        for entry in self.errors:
            if entry['code'] in EUDR_ERROR_CODES:
                return(entry['code'])
        return(None)


class UnknownServerError(EUDRError):
    """ The server failed in a way that is not otherwise recognized; the http status is preserved. """
    error_code = 'SOAP_FAULT'
