import pytest
import eudr
import lxml.etree
import requests
import zeep.ns
from eudr import schema

""" Test the echo, retrieval and submission clients end to end against a fake transport.

Nothing is sent over the network: the `session` fixture records each post and
answers with a canned response.

Run from commandline with:

```python
pytest t/test_clients.py
```

Or to debug/review failures:
```python
pytest t/test_clients.py --pdb -s
```
"""

WSSE = zeep.ns.WSSE
RETRIEVAL_V1 = schema.RETRIEVAL_NS['v1']
RETRIEVAL_V2 = schema.RETRIEVAL_NS['v2']
SUBMISSION_V2 = schema.SUBMISSION_NS['v2']
MODEL_V2 = schema.MODEL_NS['v2']

DDS_ID = '4d3e6f38-4cd5-4ec3-a1ab-2b4d1b1c1e5a'
GEOMETRY = eudr.RawGeoJSON({'type': 'Point', 'coordinates': [2.35, 48.85]}).encode()


def statement_info(prefix, identifier, status = 'AVAILABLE'):
    return(
        f'<{prefix}:statementInfo>'
        f'<{prefix}:identifier>{identifier}</{prefix}:identifier>'
        f'<{prefix}:referenceNumber>24FRABCDEF1234</{prefix}:referenceNumber>'
        f'<{prefix}:verificationNumber>ABCD1234</{prefix}:verificationNumber>'
        f'<{prefix}:status>{status}</{prefix}:status>'
        f'</{prefix}:statementInfo>'
    )


def posted(call):
    """ The envelope that was posted, parsed back. """
    return(lxml.etree.fromstring(call['data']))


def posted_request(call):
    return(posted(call).find('{*}Body')[0])


@pytest.fixture
def statement():
    return({
        'internalReferenceNumber': 'INV-2024-001',
        'activityType': 'IMPORT',
        'operator': {
            'referenceNumber': {'identifierType': 'eori', 'identifierValue': 'FR12345678'},
            'operatorAddress': {'name': 'Importer SA', 'country': 'FR'},
        },
        'countryOfActivity': 'FR',
        'commodities': [{
            'descriptors': {
                'descriptionOfGoods': 'Oak logs',
                'goodsMeasure': {'netWeight': 12000, 'supplementaryUnit': 20, 'supplementaryUnitQualifier': 'MTQ'},
            },
            'hsHeading': '4403',
            'speciesInfo': {'scientificName': 'Quercus robur', 'commonName': 'Oak'},
            'producers': {'country': 'CM', 'name': 'Forest cooperative', 'geometryGeojson': eudr.EncodedGeoJSON(GEOMETRY)},
        }],
    })


#----------------------
# Echo
#----------------------

def test_echo(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        '<ns2:EudrEchoResponse xmlns:ns2="http://ec.europa.eu/tracesnt/eudr/echo"><ns2:status>hello from the test</ns2:status></ns2:EudrEchoResponse>'
    )))
    client = eudr.EchoClient(config = settings, session = transport)

    assert client.endpoint == 'https://acceptance.eudr.webcloud.ec.europa.eu/tracesnt/ws/EudrEchoService'

    resp = client.echo('hello from the test')
    assert type(resp) is eudr.SOAPResponse
    assert resp.status == 'hello from the test'

    assert len(transport.calls) == 1
    call = transport.calls[0]
    assert call['url'] == client.endpoint
    assert call['headers']['Content-Type'] == 'text/xml;charset=UTF-8'
    assert call['headers']['SOAPAction'] == schema.ECHO_NS
    assert call['timeout'] == 10
    assert call['verify'] is True
    assert call['data'].startswith(b'<?xml')

    request = posted_request(call)
    assert lxml.etree.QName(request).localname == 'EudrEchoRequest'
    assert request[0].text == 'hello from the test'


def test_echo_without_sending(settings, session):
    transport = session()
    client = eudr.EchoClient(config = settings, session = transport)

    node = client.echo(send_request = False)
    assert type(node) is lxml.etree._Element
    assert transport.calls == []
    assert node.find('.//{*}query').text == 'hello'


def test_every_request_has_a_fresh_nonce(settings, session, soap):
    echo = soap.envelope('<ns2:EudrEchoResponse xmlns:ns2="http://ec.europa.eu/tracesnt/eudr/echo"><ns2:status>hello</ns2:status></ns2:EudrEchoResponse>')
    transport = session(soap.response(200, echo), soap.response(200, echo))
    client = eudr.EchoClient(config = settings, session = transport, timeout = 2500, server_certificate = False)

    client.echo()
    client.echo()

    nonces = [posted(call).find(f'.//{{{WSSE}}}Nonce').text for call in transport.calls]
    assert nonces[0] != nonces[1]
    assert transport.calls[0]['timeout'] == 2.5
    assert transport.calls[0]['verify'] is False


def test_verbose(settings, session, soap, capsys):
    transport = session(soap.response(200, soap.envelope(
        '<ns2:EudrEchoResponse xmlns:ns2="http://ec.europa.eu/tracesnt/eudr/echo"><ns2:status>hi</ns2:status></ns2:EudrEchoResponse>'
    )))
    eudr.EchoClient(config = settings, session = transport, verbose = True).echo('hi')

    out = capsys.readouterr().out
    assert '---- REQUEST ----' in out
    assert 'EudrEchoRequest' in out
    assert '---- Response ----' in out


#----------------------
# Retrieval
#----------------------

def test_get_dds_info(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementInfoResponse xmlns:ns3="{RETRIEVAL_V1}">' + statement_info('ns3', DDS_ID) + '</ns3:GetStatementInfoResponse>'
    )))
    client = eudr.RetrievalClient(config = settings, session = transport)

    results = client.get_dds_info(DDS_ID)
    assert type(results) is list
    assert len(results) == 1
    assert results[0]['identifier'] == DDS_ID
    assert results[0]['status'] == 'AVAILABLE'

    call = transport.calls[0]
    assert call['headers']['SOAPAction'] == 'http://ec.europa.eu/tracesnt/certificate/eudr/retrieval/getDdsInfo'
    assert call['url'].endswith('/EUDRRetrievalServiceV1')
    identifiers = posted_request(call).findall('{*}identifier')
    assert [i.text for i in identifiers] == [DDS_ID]


def test_get_dds_info_many(settings, session, soap):
    second = 'a0b1c2d3-0000-4000-8000-000000000002'
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementInfoResponse xmlns:ns3="{RETRIEVAL_V1}">'
        + statement_info('ns3', DDS_ID) + statement_info('ns3', second, 'SUBMITTED')
        + '</ns3:GetStatementInfoResponse>'
    )))
    client = eudr.RetrievalClient(config = settings, session = transport)

    results = client.get_dds_info([DDS_ID, second])
    assert [r['status'] for r in results] == ['AVAILABLE', 'SUBMITTED']
    assert len(posted_request(transport.calls[0]).findall('{*}identifier')) == 2


def test_get_dds_info_empty_result(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementInfoResponse xmlns:ns3="{RETRIEVAL_V1}"/>'
    )))
    client = eudr.RetrievalClient(config = settings, session = transport)
    assert client.get_dds_info(DDS_ID) == []


@pytest.mark.parametrize('uuids', [[], None, ['x'] * 101])
def test_get_dds_info_limits(settings, session, uuids):
    transport = session()
    client = eudr.RetrievalClient(config = settings, session = transport)

    with pytest.raises(eudr.ValidationError) as excinf:
        client.get_dds_info(uuids)
    assert excinf.value.error_code == 'BUSINESS_RULES_VALIDATION'
    assert transport.calls == []


def test_get_dds_info_by_internal_reference_number(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetDdsInfoByInternalReferenceNumberResponse xmlns:ns3="{RETRIEVAL_V1}">'
        + statement_info('ns3', DDS_ID)
        + '</ns3:GetDdsInfoByInternalReferenceNumberResponse>'
    )))
    client = eudr.RetrievalClient(config = settings, session = transport)

    results = client.get_dds_info_by_internal_reference_number('INV-2024-001')
    assert results[0]['identifier'] == DDS_ID
    assert posted_request(transport.calls[0]).text == 'INV-2024-001'

    for bad in ('AB', 'X' * 51, ''):
        with pytest.raises(eudr.ValidationError):
            client.get_dds_info_by_internal_reference_number(bad)
    assert len(transport.calls) == 1


def test_get_statement_by_identifiers(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementByIdentifiersResponse xmlns:ns3="{RETRIEVAL_V2}" xmlns:ns2="{MODEL_V2}">'
        '<ns3:statement>'
        '<ns2:referenceNumber>24FRABCDEF1234</ns2:referenceNumber>'
        '<ns2:activityType>IMPORT</ns2:activityType>'
        '<ns2:operator><ns2:referenceNumber><ns2:identifierType>eori</ns2:identifierType><ns2:identifierValue>FR1</ns2:identifierValue></ns2:referenceNumber></ns2:operator>'
        '<ns2:commodities><ns2:hsHeading>4403</ns2:hsHeading>'
        f'<ns2:producers><ns2:country>CM</ns2:country><ns2:geometryGeojson>{GEOMETRY}</ns2:geometryGeojson></ns2:producers>'
        '</ns2:commodities>'
        '<ns2:associatedStatements><ns2:referenceNumber>24FRREF00001</ns2:referenceNumber></ns2:associatedStatements>'
        '</ns3:statement>'
        '</ns3:GetStatementByIdentifiersResponse>'
    )))
    client = eudr.RetrievalClientV2(config = settings, session = transport)

    statements = client.get_statement_by_identifiers('24FRABCDEF1234', 'ABCD1234', decode_geojson = True)
    assert len(statements) == 1

    stmt = statements[0]
    assert stmt['activityType'] == 'IMPORT'
    assert type(stmt['commodities']) is list
    assert type(stmt['commodities'][0]['producers']) is list
    assert stmt['commodities'][0]['producers'][0]['geometryGeojson'] == {'type': 'Point', 'coordinates': [2.35, 48.85]}
    assert type(stmt['operator']['referenceNumber']) is list
    assert type(stmt['associatedStatements']) is list
    assert stmt['associatedStatements'][0]['referenceNumber'] == '24FRREF00001'

    call = transport.calls[0]
    assert call['url'].endswith('/EUDRRetrievalServiceV2')
    assert call['headers']['SOAPAction'] == 'http://ec.europa.eu/tracesnt/certificate/eudr/retrieval/getStatementByIdentifiers'
    request = posted_request(call)
    assert [lxml.etree.QName(c).localname for c in request] == ['referenceNumber', 'verificationNumber']


def test_get_statement_associate_statement(settings, session, soap):
    # retrieval names the associated statements differently from submission
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementByIdentifiersResponse xmlns:ns3="{RETRIEVAL_V2}" xmlns:ns2="{MODEL_V2}">'
        '<ns3:statement>'
        '<ns2:referenceNumber>24FRABCDEF1234</ns2:referenceNumber>'
        '<ns2:associateStatement><ns2:referenceNumber>24FRREF00001</ns2:referenceNumber><ns2:verificationNumber>ABCD1234</ns2:verificationNumber></ns2:associateStatement>'
        '</ns3:statement>'
        '</ns3:GetStatementByIdentifiersResponse>'
    )))
    client = eudr.RetrievalClientV2(config = settings, session = transport)

    stmt = client.get_statement_by_identifiers('24FRABCDEF1234', 'ABCD1234')[0]
    assert 'associateStatement' not in stmt
    assert stmt['associatedStatements'] == [{'referenceNumber': '24FRREF00001', 'verificationNumber': 'ABCD1234'}]


def test_text_body(settings, session, soap):
    client = eudr.RetrievalClient(config = settings, session = session(soap.response(200, soap.envelope('maintenance'))))

    with pytest.raises(eudr.ProtocolError) as excinf:
        client.get_dds_info(DDS_ID)
    assert excinf.value.error_code == 'XML_STRUCTURE_ERROR'


def test_text_result(settings, session, soap):
    client = eudr.RetrievalClient(config = settings, session = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementInfoResponse xmlns:ns3="{RETRIEVAL_V1}">unavailable</ns3:GetStatementInfoResponse>'
    ))))

    with pytest.raises(eudr.ProtocolError) as excinf:
        client.get_dds_info(DDS_ID)
    assert excinf.value.error_code == 'UNEXPECTED_RESPONSE'


def test_leaf_namespace_declarations(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetStatementInfoResponse xmlns:ns3="{RETRIEVAL_V1}">'
        '<ns3:statementInfo>'
        f'<ns3:identifier>{DDS_ID}</ns3:identifier>'
        '<ns5:status xmlns:ns5="http://ec.europa.eu/tracesnt/certificate/eudr/model/v1">AVAILABLE</ns5:status>'
        '</ns3:statementInfo>'
        '</ns3:GetStatementInfoResponse>'
    )))
    client = eudr.RetrievalClient(config = settings, session = transport)

    results = client.get_dds_info(DDS_ID)
    assert results[0]['status'] == 'AVAILABLE'
    assert results[0]['identifier'] == DDS_ID


def test_get_statement_v1_action(settings, session):
    client = eudr.RetrievalClient(config = settings, session = session())
    node = client.get_statement_by_identifiers('anything', 'goes', send_request = False)
    assert node.find('.//{*}referenceNumber').text == 'anything'
    assert client.operation('getStatementByIdentifiers').soap_action.endswith('eudr4authorities/getStatementByIdentifiers')


@pytest.mark.parametrize('reference, verification, field', [
    ('24FR', 'ABCD1234', 'referenceNumber'),
    ('24FRABCDEF123456', 'ABCD1234', 'referenceNumber'),
    ('24frabcdef1234', 'ABCD1234', 'referenceNumber'),
    ('24FRABCDEF1234', 'ABCD123', 'verificationNumber'),
    ('24FRABCDEF1234', 'abcd1234', 'verificationNumber'),
    ('', 'ABCD1234', 'referenceNumber'),
    ('24FRABCDEF1234', None, 'verificationNumber'),
])
def test_v2_identifier_checks(settings, session, reference, verification, field):
    transport = session()
    client = eudr.RetrievalClientV2(config = settings, session = transport)

    with pytest.raises(eudr.ValidationError) as excinf:
        client.get_statement_by_identifiers(reference, verification)
    assert excinf.value.field == field
    assert transport.calls == []


def test_statement_not_found(settings, session, soap):
    detail = (
        '<ns4:BusinessRulesValidationException xmlns:ns4="http://ec.europa.eu/sanco/tracesnt/base/v4">'
        '<ns4:Error><ns4:ID>EUDR-API-NO-DDS</ns4:ID><ns4:Message>No DDS</ns4:Message></ns4:Error>'
        '</ns4:BusinessRulesValidationException>'
    )
    transport = session(soap.response(500, soap.fault('Business rules validation failed', detail = detail)))
    client = eudr.RetrievalClientV2(config = settings, session = transport)

    with pytest.raises(eudr.NotFound) as excinf:
        client.get_statement_by_identifiers('24FRABCDEF1234', 'ABCD1234')
    assert excinf.value.http_status == 404


def test_get_referenced_dds(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:GetReferencedDdsResponse xmlns:ns3="{RETRIEVAL_V2}" xmlns:ns2="{MODEL_V2}">'
        '<ns3:referenceDds><ns2:activityType>DOMESTIC</ns2:activityType>'
        '<ns2:commodities><ns2:hsHeading>4407</ns2:hsHeading></ns2:commodities></ns3:referenceDds>'
        '</ns3:GetReferencedDdsResponse>'
    )))
    client = eudr.RetrievalClientV2(config = settings, session = transport)

    results = client.get_referenced_dds('24FRREF00001', 'c2VjdXJpdHk=')
    assert results[0]['activityType'] == 'DOMESTIC'
    assert type(results[0]['commodities']) is list

    request = posted_request(transport.calls[0])
    assert request.find('{*}referenceDdsVerificationNumber').text == 'c2VjdXJpdHk='

    with pytest.raises(eudr.ValidationError):
        client.get_referenced_dds('lowercase', 'x')
    with pytest.raises(eudr.ValidationError):
        client.get_referenced_dds('24FRREF00001', '')
    assert len(transport.calls) == 1


def test_v1_has_no_referenced_dds(settings):
    assert not hasattr(eudr.RetrievalClient(config = settings), 'get_referenced_dds')


#----------------------
# Submission
#----------------------

def test_submit_dds(settings, session, soap, statement):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:SubmitStatementResponse xmlns:ns3="{SUBMISSION_V2}"><ns3:ddsIdentifier>{DDS_ID}</ns3:ddsIdentifier></ns3:SubmitStatementResponse>'
    )))
    client = eudr.SubmissionClientV2(config = settings, session = transport)

    resp = client.submit_dds(statement)
    assert resp.dds_identifier == DDS_ID

    call = transport.calls[0]
    assert call['url'].endswith('/EUDRSubmissionServiceV2')
    assert call['headers']['SOAPAction'] == SUBMISSION_V2

    request = posted_request(call)
    assert request.find('{*}operatorType').text == 'OPERATOR'
    stmt = request.find('{*}statement')
    assert stmt.find('.//{*}supplementaryUnitQualifier').text == 'MTQ'
    assert stmt.find('.//{*}geometryGeojson').text == GEOMETRY


def test_submit_numeric_geometry(settings, session, statement):
    statement['commodities'][0]['producers']['geometryGeojson'] = 12345
    client = eudr.SubmissionClientV2(config = settings, session = session())

    with pytest.warns(UserWarning):
        node = client.submit_dds(statement, send_request = False)
    assert node.find('.//{*}geometryGeojson').text == '12345'

    statement['commodities'][0]['producers']['geometryGeojson'] = eudr.EncodedGeoJSON(12345)
    with pytest.raises(eudr.ValidationError) as excinf:
        client.submit_dds(statement, send_request = False)
    assert excinf.value.error_code == 'INVALID_VALUE'
    assert excinf.value.field.endswith('producers[0].geometryGeojson')


def test_submit_invalid_statement_is_not_sent(settings, session, statement):
    transport = session()
    client = eudr.SubmissionClientV2(config = settings, session = transport)
    statement['commodities'][0]['descriptors']['goodsMeasure']['percentageEstimationOrDeviation'] = 5

    with pytest.raises(eudr.ValidationError) as excinf:
        client.submit_dds(statement)

    assert excinf.value.error_code == 'EUDR_COMMODITIES_DESCRIPTOR_PERCENTAGE_ESTIMATION_NOT_ALLOWED'
    assert excinf.value.field == 'commodities[0].descriptors.goodsMeasure.percentageEstimationOrDeviation'
    assert transport.calls == []


def test_submit_business_rule_failure(settings, session, soap, statement):
    detail = (
        '<ns4:BusinessRulesValidationException xmlns:ns4="http://ec.europa.eu/sanco/tracesnt/base/v4">'
        '<ns4:Error><ns4:ID>EUDR-OPERATOR-EORI-FOR-ACTIVITY-MISSING</ns4:ID><ns4:Message>EORI missing</ns4:Message></ns4:Error>'
        '</ns4:BusinessRulesValidationException>'
    )
    transport = session(soap.response(500, soap.fault('Business rules validation failed', detail = detail, faultcode = 'S:Client')))
    client = eudr.SubmissionClientV2(config = settings, session = transport)

    with pytest.raises(eudr.BusinessRuleServerError) as excinf:
        client.submit_dds(statement)
    assert excinf.value.http_status == 400
    assert excinf.value.eudr_error_code == 'EUDR_OPERATOR_EORI_FOR_ACTIVITY_MISSING'


def test_amend_dds(settings, session, soap, statement):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:AmendStatementResponse xmlns:ns3="{SUBMISSION_V2}"/>'
    )))
    client = eudr.SubmissionClientV2(config = settings, session = transport)

    resp = client.amend_dds(DDS_ID, statement)
    assert resp.success is True

    call = transport.calls[0]
    assert call['headers']['SOAPAction'] == SUBMISSION_V2 + '#amendDds'
    request = posted_request(call)
    assert [lxml.etree.QName(c).localname for c in request] == ['ddsIdentifier', 'statement']


def test_amend_with_empty_body(settings, session, soap, statement):
    transport = session(soap.response(200, soap.envelope('')))
    client = eudr.SubmissionClientV2(config = settings, session = transport)
    assert client.amend_dds(DDS_ID, statement).success is True


def test_retract_dds(settings, session, soap):
    transport = session(soap.response(200, soap.envelope(
        f'<ns3:RetractStatementResponse xmlns:ns3="{SUBMISSION_V2}"><ns3:status>SC_200_OK</ns3:status></ns3:RetractStatementResponse>'
    )))
    client = eudr.SubmissionClientV2(config = settings, session = transport)

    resp = client.retract_dds(DDS_ID)
    assert resp.status == 'SC_200_OK'
    assert resp.success is True
    assert transport.calls[0]['headers']['SOAPAction'] == SUBMISSION_V2 + '#retractDds'


def test_submission_v1(settings, session, statement):
    statement['operator'] = {
        'referenceNumber': {'identifierType': 'eori', 'identifierValue': 'FR12345678'},
        'nameAndAddress': {'name': 'Importer SA', 'country': 'FR', 'address': '1 quai du Port, Marseille'},
    }
    client = eudr.SubmissionClient(config = settings, session = session())

    node = client.submit_dds(statement, operator_type = 'TRADER', send_request = False)
    assert client.endpoint.endswith('/EUDRSubmissionServiceV1')
    assert node.find('.//{*}operatorType').text == 'TRADER'
    assert node.find('.//{*}nameAndAddress') is not None


#----------------------
# Transport failures
#----------------------

@pytest.mark.parametrize('exception', [
    requests.exceptions.ConnectionError('connection refused'),
    requests.exceptions.Timeout('read timed out'),
    requests.exceptions.SSLError('certificate verify failed: unable to get local issuer certificate'),
])
def test_network_failure(settings, session, exception):
    client = eudr.EchoClient(config = settings, session = session(exception = exception))

    with pytest.raises(eudr.NetworkError) as excinf:
        client.echo()
    assert excinf.value.retryable
    assert excinf.value.http_status is None


def test_authentication_failure(settings, session, soap):
    transport = session(soap.response(500, soap.fault('UnauthenticatedException: invalid password digest')))
    client = eudr.EchoClient(config = settings, session = transport)

    with pytest.raises(eudr.AuthenticationError) as excinf:
        client.echo()
    assert excinf.value.http_status == 401


def test_malformed_success(settings, session, soap):
    client = eudr.EchoClient(config = settings, session = session(soap.response(200, 'not xml at all')))

    with pytest.raises(eudr.ProtocolError) as excinf:
        client.echo()
    assert excinf.value.error_code == 'XML_PARSE_ERROR'


def test_unexpected_success(settings, session, soap):
    client = eudr.EchoClient(config = settings, session = session(soap.response(200, soap.envelope(
        '<ns2:SomethingElse xmlns:ns2="http://ec.europa.eu/tracesnt/eudr/echo"/>'
    ))))

    with pytest.raises(eudr.ProtocolError) as excinf:
        client.echo()
    assert excinf.value.error_code == 'UNEXPECTED_RESPONSE'


def test_fault_with_success_status(settings, session, soap):
    client = eudr.EchoClient(config = settings, session = session(soap.response(200, soap.fault('Odd'))))

    with pytest.raises(eudr.UnknownServerError) as excinf:
        client.echo()
    assert excinf.value.http_status == 200


def test_missing_configuration(settings):
    del settings['password']
    with pytest.raises(eudr.ConfigurationError):
        eudr.SubmissionClient(config = settings)
