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

import lxml.etree

from .geojson import encode_geojson
from .response import REPEATABLE_FIELDS

BASE_NS = 'http://ec.europa.eu/sanco/tracesnt/base/v4'
ECHO_NS = 'http://ec.europa.eu/tracesnt/eudr/echo'
RETRIEVAL_NS = {
    'v1': 'http://ec.europa.eu/tracesnt/certificate/eudr/retrieval/v1',
    'v2': 'http://ec.europa.eu/tracesnt/certificate/eudr/retrieval/v2',
}
SUBMISSION_NS = {
    'v1': 'http://ec.europa.eu/tracesnt/certificate/eudr/submission/v1',
    'v2': 'http://ec.europa.eu/tracesnt/certificate/eudr/submission/v2',
}
MODEL_NS = {
    'v1': 'http://ec.europa.eu/tracesnt/certificate/eudr/model/v1',
    'v2': 'http://ec.europa.eu/tracesnt/certificate/eudr/model/v2',
}

RETRIEVAL_ACTION = 'http://ec.europa.eu/tracesnt/certificate/eudr/retrieval/'


class Element():
    """ One element of a request schema, in the spirit of zeep.xsd.Element.

    Args:
        name: Local element name, also the key looked up in the payload dict
        namespace: Namespace URI of the element
        children: Child Elements, in the order the schema's sequence requires. None for a text element.
        repeated: maxOccurs > 1; a single value or a list is accepted and emitted as siblings
        required: Raise a ValidationError if the value is missing
        default: Value used when the payload has none
        formatter: Callable turning the python value into element text
    """

    def __init__(self, name, namespace, children = None, repeated = False, required = False, default = None, formatter = None):
        self.name = name
        self.namespace = namespace
        self.children = children
        self.repeated = repeated
        self.required = required
        self.default = default
        self.formatter = formatter

    @property
    def qname(self):
        return(lxml.etree.QName(self.namespace, self.name))

    def format(self, value):
        if self.formatter:
            return(self.formatter(value))
        if type(value) is bool:
            return('true' if value else 'false')
        return(str(value))

    def __repr__(self):
        return(f"Element({self.name})")


class OperationDescriptor():
    """ Everything needed to build and read one SOAP operation.

    Args:
        name: The operation name as used by the client, e.g. `submitDds`
        soap_action: Value of the SOAPAction http header
        namespaces: Prefix to namespace map declared on the envelope
        request: The root Element of the request body
        repeatable: Field names to normalize to lists in the result
    """

    def __init__(self, name, soap_action, namespaces, request, repeatable = ()):
        self.name = name
        self.soap_action = soap_action
        self.namespaces = namespaces
        self.request = request
        self.repeatable = frozenset(repeatable)

    @property
    def response_name(self):
        """ `SubmitStatementRequest` is answered by `SubmitStatementResponse`. """
        name = self.request.name
        if name.endswith('Request'):
            name = name[:-len('Request')]
        return(name + 'Response')

    def __repr__(self):
        return(f"OperationDescriptor({self.name}, {self.request.name})")


#---- Statement ----

def statement_elements(version):
    """ The children of a statement, in schema order, for the v1 or v2 model. """
    ns = MODEL_NS[version]

    if version == 'v1':
        address = Element('nameAndAddress', ns, [
            Element('name', BASE_NS),
            Element('country', BASE_NS),
            Element('address', BASE_NS),
        ])
        measure = []
    else:
        address = Element('operatorAddress', ns, [
            Element('name', ns),
            Element('country', ns),
            Element('street', ns),
            Element('postalCode', ns),
            Element('city', ns),
            Element('fullAddress', ns),
        ])
        measure = [Element('percentageEstimationOrDeviation', ns)]

    measure += [
        Element('volume', ns),
        Element('netWeight', ns),
        Element('supplementaryUnit', ns),
        Element('supplementaryUnitQualifier', ns),
    ]

    return([
        Element('internalReferenceNumber', ns, required = True),
        Element('activityType', ns, required = True),
        Element('operator', ns, [
            Element('referenceNumber', ns, [
                Element('identifierType', ns, required = True),
                Element('identifierValue', ns, required = True),
            ], repeated = True),
            address,
            Element('email', ns),
            Element('phone', ns),
        ]),
        Element('countryOfActivity', ns),
        Element('borderCrossCountry', ns),
        Element('countryOfEntry', ns),
        Element('comment', ns),
        Element('commodities', ns, [
            Element('descriptors', ns, [
                Element('descriptionOfGoods', ns),
                Element('goodsMeasure', ns, measure),
            ]),
            Element('hsHeading', ns),
            Element('speciesInfo', ns, [
                Element('scientificName', ns),
                Element('commonName', ns),
            ], repeated = True),
            Element('producers', ns, [
                Element('country', ns),
                Element('name', ns),
                Element('geometryGeojson', ns, formatter = encode_geojson),
            ], repeated = True),
        ], repeated = True),
        Element('geoLocationConfidential', ns, default = False),
        Element('associatedStatements', ns, [
            Element('referenceNumber', ns, required = True),
            Element('verificationNumber', ns),
        ], repeated = True),
    ])


#---- Operations ----

def _echo_operations():
    namespaces = {'echo': ECHO_NS}
    return({
        'echo': OperationDescriptor(
            'echo', ECHO_NS, namespaces,
            Element('EudrEchoRequest', ECHO_NS, [Element('query', ECHO_NS)]),
        ),
    })


def _retrieval_operations(version):
    ns = RETRIEVAL_NS[version]
    namespaces = {version: ns}
    if version == 'v1':
        by_identifiers_action = 'http://ec.europa.eu/tracesnt/certificate/eudr/eudr4authorities/getStatementByIdentifiers'
    else:
        by_identifiers_action = RETRIEVAL_ACTION + 'getStatementByIdentifiers'

    operations = {
        'getDdsInfo': OperationDescriptor(
            'getDdsInfo', RETRIEVAL_ACTION + 'getDdsInfo', namespaces,
            Element('GetStatementInfoRequest', ns, [
                Element('identifier', ns, repeated = True, required = True),
            ]),
            repeatable = ('statementInfo',),
        ),
        'getDdsInfoByInternalReferenceNumber': OperationDescriptor(
            'getDdsInfoByInternalReferenceNumber', RETRIEVAL_ACTION + 'getDdsInfoByInternalReferenceNumber', namespaces,
            Element('GetDdsInfoByInternalReferenceNumberRequest', ns, required = True),
            repeatable = ('statementInfo',),
        ),
        'getStatementByIdentifiers': OperationDescriptor(
            'getStatementByIdentifiers', by_identifiers_action, namespaces,
            Element('GetStatementByIdentifiersRequest', ns, [
                Element('referenceNumber', ns, required = True),
                Element('verificationNumber', ns, required = True),
            ]),
            repeatable = ('statement',),
        ),
    }

    if version == 'v2':
        operations['getReferencedDds'] = OperationDescriptor(
            'getReferencedDds', RETRIEVAL_ACTION + 'getReferencedDds', namespaces,
            Element('GetReferencedDdsRequest', ns, [
                Element('referenceNumber', ns, required = True),
                Element('referenceDdsVerificationNumber', ns, required = True),
            ]),
            repeatable = ('referenceDds',),
        )

    for operation in operations.values():
        operation.repeatable = operation.repeatable | REPEATABLE_FIELDS
    return(operations)


def _submission_operations(version):
    ns = SUBMISSION_NS[version]
    model = MODEL_NS[version]
    namespaces = {version: ns, 'model': model, 'v4': BASE_NS}

    return({
        'submitDds': OperationDescriptor(
            'submitDds', ns, namespaces,
            Element('SubmitStatementRequest', ns, [
                Element('operatorType', ns, required = True),
                Element('statement', ns, statement_elements(version), required = True),
            ]),
        ),
        'amendDds': OperationDescriptor(
            'amendDds', ns + '#amendDds', namespaces,
            Element('AmendStatementRequest', ns, [
                Element('ddsIdentifier', ns, required = True),
                Element('statement', ns, statement_elements(version), required = True),
            ]),
        ),
        'retractDds': OperationDescriptor(
            'retractDds', ns + '#retractDds', namespaces,
            Element('RetractStatementRequest', ns, [
                Element('ddsIdentifier', ns, required = True),
            ]),
        ),
    })


OPERATIONS = {
    'echo': {'v1': _echo_operations(), 'v2': _echo_operations()},
    'retrieval': {v: _retrieval_operations(v) for v in ('v1', 'v2')},
    'submission': {v: _submission_operations(v) for v in ('v1', 'v2')},
}


def get_operation(service, version, name):
    """ Look up the OperationDescriptor for an operation.

    Raises:
        KeyError: if the service, version or operation does not exist
    """
    try:
        return(OPERATIONS[service][version][name])
    except KeyError:
        raise KeyError(f"No operation {name} in {service} {version}") from None
