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

import logging

from .client import Client
from .validation import validate

logger = logging.getLogger(__name__)

class SubmissionClient(Client):
    """ Subclass to submit, amend and retract statements (v1 of the submission service).

    Statements are dicts keyed by the EUDR element names, e.g.

        {
            'internalReferenceNumber': 'INV-2024-001',
            'activityType': 'IMPORT',
            'operator': {'referenceNumber': {'identifierType': 'eori', 'identifierValue': 'FR123'}, ...},
            'countryOfActivity': 'FR',
            'commodities': [{'descriptors': {...}, 'hsHeading': '4403', 'producers': [...]}],
            'geoLocationConfidential': False,
        }

    Statements are validated before anything is sent; see `eudr.validation`.
    """

    service = 'submission'
    version = 'v1'

    def _validated(self, statement):
        error = validate(statement)
        if error:
            logger.debug("Statement failed validation: %s (%s)", error.error_code, error.field)
            raise error
        return(statement)

    def submit_dds(self, statement:dict, operator_type:str = 'OPERATOR', send_request = True):
        """ Submit a new Due Diligence Statement.

        Args:
            statement: The statement
            operator_type: The role the statement is submitted in, e.g. OPERATOR or TRADER
            send_request: If True, sends the request and returns the SOAPResponse. If False, returns the generated lxml.etree for the request only.
        Returns:
            SOAPResponse with the new statement's UUID as the `dds_identifier` property.
        Raises:
            ValidationError if the statement breaks a business rule; nothing is sent in that case.
        """
        result = self.call('submitDds', {
            'operatorType': operator_type,
            'statement': self._validated(statement),
        }, send_request = send_request)
        if not send_request:
            return(result)

        result._add_properties(dds_identifier = result.result_data.get('ddsIdentifier'))
        return(result)

    def amend_dds(self, dds_identifier:str, statement:dict, send_request = True):
        """ Replace the content of a submitted statement.

        Args:
            dds_identifier: The UUID returned when the statement was submitted
            statement: The complete new statement
            send_request: If True, sends the request and returns the SOAPResponse. If False, returns the generated lxml.etree for the request only.
        Returns:
            SOAPResponse with `success` set to True.
        """
        result = self.call('amendDds', {
            'ddsIdentifier': dds_identifier,
            'statement': self._validated(statement),
        }, send_request = send_request, expect_result = False)
        if not send_request:
            return(result)

        result._add_properties(success = True)
        return(result)

    def retract_dds(self, dds_identifier:str, send_request = True):
        """ Retract (withdraw) a submitted statement.

        Returns:
            SOAPResponse with the `status` the server returned and `success`, True if the status is SC_200_OK.
        """
        result = self.call('retractDds', {'ddsIdentifier': dds_identifier}, send_request = send_request)
        if not send_request:
            return(result)

        status = result.result_data.get('status')
        result._add_properties(status = status, success = status == 'SC_200_OK')
        return(result)


class SubmissionClientV2(SubmissionClient):
    """ Version 2 of the submission service.

    The operator block uses `operatorAddress` (name, country, street, postalCode, city,
    fullAddress) instead of v1's `nameAndAddress`, and goods measures may carry a
    `percentageEstimationOrDeviation`.
    """

    version = 'v2'
