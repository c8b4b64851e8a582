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

import re

from .client import Client
from .exceptions import ValidationError
from .geojson import decode_geojson
from .response import as_list

MAX_IDENTIFIERS = 100
ITEM_KEYS = ('statementInfo', 'statement', 'referenceDds')

identifier_re = re.compile(r'^[A-Z0-9]+$')


class RetrievalClient(Client):
    """ Subclass to handle DDS retrieval (v1 of the retrieval service). """

    service = 'retrieval'
    version = 'v1'

    #----------------------
    # Private Helper Functions
    #----------------------

    @staticmethod
    def _invalid(message, field):
        return(ValidationError(message, error_code = 'BUSINESS_RULES_VALIDATION', field = field))

    def _check_identifiers(self, reference_number, verification_number):
        """ Local checks on getStatementByIdentifiers arguments; v1 leaves it to the server. """
        if not reference_number:
            raise self._invalid("referenceNumber is required", 'referenceNumber')
        if not verification_number:
            raise self._invalid("verificationNumber is required", 'verificationNumber')

    @staticmethod
    def _items(result):
        """ The list of statements in a retrieval result, whichever key the operation uses. """
        for key in ITEM_KEYS:
            if key in result:
                return([item for item in as_list(result[key]) if item is not None])
        return([result] if result else [])

    @staticmethod
    def _decode_geometries(statement):
        for commodity in statement.get('commodities', []):
            if not isinstance(commodity, dict):
                continue
            for producer in commodity.get('producers', []):
                if isinstance(producer, dict) and 'geometryGeojson' in producer:
                    producer['geometryGeojson'] = decode_geojson(producer['geometryGeojson'])
        return(statement)

    #----------------------
    # Operations
    #----------------------

    def get_dds_info(self, uuids, send_request = True, raw = False):
        """ Get the status and reference numbers of statements by their DDS identifiers.

        Args:
            uuids: A DDS identifier (UUID) or a list of up to 100 of them
            send_request: If True, sends the request. If False, returns the generated lxml.etree for the request only.
            raw: If True, return the SOAPResponse instead of the list of results.
        Returns:
            list: one `statementInfo` dict per statement found
        Raises:
            ValidationError if no identifiers or more than 100 are given
        """
        uuids = as_list(uuids)
        if not uuids:
            raise self._invalid("At least one DDS identifier is required", 'identifier')
        if len(uuids) > MAX_IDENTIFIERS:
            raise self._invalid(f"At most {MAX_IDENTIFIERS} DDS identifiers may be requested at once, got {len(uuids)}", 'identifier')

        result = self.call('getDdsInfo', {'identifier': uuids}, send_request = send_request)
        if not send_request or raw:
            return(result)
        return(self._items(result.result_data))

    def get_dds_info_by_internal_reference_number(self, internal_reference_number:str, send_request = True, raw = False):
        """ Get the statements filed under one of your internal reference numbers.

        Args:
            internal_reference_number: 3 to 50 characters
            send_request: If True, sends the request. If False, returns the generated lxml.etree for the request only.
            raw: If True, return the SOAPResponse instead of the list of results.
        Returns:
            list: one `statementInfo` dict per statement found
        """
        if not internal_reference_number or not 3 <= len(internal_reference_number) <= 50:
            raise self._invalid("The internal reference number must be between 3 and 50 characters", 'internalReferenceNumber')

        result = self.call('getDdsInfoByInternalReferenceNumber', internal_reference_number, send_request = send_request)
        if not send_request or raw:
            return(result)
        return(self._items(result.result_data))

    def get_statement_by_identifiers(self, reference_number:str, verification_number:str, decode_geojson:bool = False, send_request = True, raw = False):
        """ Get the full content of a statement from its reference and verification numbers.

        Args:
            reference_number: The DDS reference number
            verification_number: The DDS verification number
            decode_geojson: If True, the producers' geometryGeojson is decoded from base64 into python structures.
            send_request: If True, sends the request. If False, returns the generated lxml.etree for the request only.
            raw: If True, return the SOAPResponse instead of the list of results.
        Returns:
            list: the `statement` dicts, with commodities, producers, speciesInfo and associatedStatements always lists
        Raises:
            NotFound if there is no such statement
        """
        self._check_identifiers(reference_number, verification_number)

        result = self.call('getStatementByIdentifiers', {
            'referenceNumber': reference_number,
            'verificationNumber': verification_number,
        }, send_request = send_request)
        if not send_request or raw:
            return(result)

        statements = self._items(result.result_data)
        if decode_geojson:
            statements = [self._decode_geometries(s) for s in statements]
        return(statements)


class RetrievalClientV2(RetrievalClient):
    """ Version 2 of the retrieval service, which adds `get_referenced_dds`. """

    version = 'v2'

    def _check_identifiers(self, reference_number, verification_number):
        super()._check_identifiers(reference_number, verification_number)
        if not 8 <= len(reference_number) <= 15:
            raise self._invalid("Reference number must be between 8 and 15 characters", 'referenceNumber')
        if not identifier_re.match(reference_number):
            raise self._invalid("Reference number must contain only uppercase letters and numbers", 'referenceNumber')
        if len(verification_number) != 8:
            raise self._invalid("Verification number must be exactly 8 characters", 'verificationNumber')
        if not identifier_re.match(verification_number):
            raise self._invalid("Verification number must contain only uppercase letters and numbers", 'verificationNumber')

    def get_referenced_dds(self, reference_number:str, security_number:str, send_request = True, raw = False):
        """ Get a statement that is referenced by one of your statements, using the reference's security number.

        Args:
            reference_number: The referenced DDS reference number (1 to 50 uppercase letters and numbers)
            security_number: The referenceDdsVerificationNumber given with the reference
            send_request: If True, sends the request. If False, returns the generated lxml.etree for the request only.
            raw: If True, return the SOAPResponse instead of the list of results.
        Returns:
            list: the referenced statements
        """
        if not reference_number or not 1 <= len(reference_number) <= 50:
            raise self._invalid("Reference number must be between 1 and 50 characters", 'referenceNumber')
        if not identifier_re.match(reference_number):
            raise self._invalid("Reference number must contain only uppercase letters and numbers", 'referenceNumber')
        if not security_number:
            raise self._invalid("The security number is required", 'referenceDdsVerificationNumber')

        result = self.call('getReferencedDds', {
            'referenceNumber': reference_number,
            'referenceDdsVerificationNumber': security_number,
        }, send_request = send_request)
        if not send_request or raw:
            return(result)
        return(self._items(result.result_data))
