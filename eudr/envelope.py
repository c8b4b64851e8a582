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

import lxml.etree
import zeep.ns

from .exceptions import ValidationError
from .response import as_list
from .schema import BASE_NS
from .security import UsernameDigestToken

logger = logging.getLogger(__name__)

SOAP_ENV = zeep.ns.SOAP_ENV_11


def build_envelope_node(descriptor, security_context, config, payload):
    """ Build the complete SOAP request for an operation as an lxml element.

    Args:
        descriptor: The OperationDescriptor of the operation
        security_context: A fresh SecurityContext, used for this envelope only
        config: The ServiceConfig supplying the username and client id
        payload: The request body as a dict keyed by element name, or a plain value for text-only requests
    Returns:
        The soapenv:Envelope element
    Raises:
        ValidationError: if a required element is missing or a value can't be put in XML
    """
    nsmap = {'soapenv': SOAP_ENV}
    nsmap.update(descriptor.namespaces)
    if BASE_NS not in nsmap.values():
        nsmap['v4'] = BASE_NS

    envelope = lxml.etree.Element(lxml.etree.QName(SOAP_ENV, 'Envelope'), nsmap = nsmap)
    header = lxml.etree.SubElement(envelope, lxml.etree.QName(SOAP_ENV, 'Header'))
    body = lxml.etree.SubElement(envelope, lxml.etree.QName(SOAP_ENV, 'Body'))

    UsernameDigestToken(config.username, security_context).apply(envelope, {})

    # the client id has to follow the Security block
    client_id = lxml.etree.SubElement(header, lxml.etree.QName(BASE_NS, 'WebServiceClientId'))
    client_id.text = config.client_id

    render(body, descriptor.request, payload)
    return(envelope)


def build_envelope(descriptor, security_context, config, payload):
    """ Same as `build_envelope_node`, serialized to a UTF-8 XML string with a declaration. """
    node = build_envelope_node(descriptor, security_context, config, payload)
    return(envelope_string(node))


def envelope_string(node):
    return(lxml.etree.tostring(node, xml_declaration = True, encoding = 'UTF-8').decode('utf-8'))


def _missing(value):
    return(value is None or value == '' or value == [] or value == ())


def render(parent, element, value, path = None):
    """ Append `element` (and its children, in schema order) under `parent`.

    Repeated elements take a single value or a list and are written as siblings.
    Keys in the payload that the schema doesn't know are ignored.
    """
    path = f"{path}.{element.name}" if path else element.name

    if _missing(value):
        if element.default is not None:
            value = element.default
        elif element.required:
            raise ValidationError(f"{path} is required", error_code = 'REQUIRED_FIELD_MISSING', field = path)
        else:
            return

    values = as_list(value) if element.repeated else [value]
    for index, item in enumerate(values):
        item_path = f"{path}[{index}]" if element.repeated else path
        node = lxml.etree.SubElement(parent, element.qname)

        if element.children is None:
            try:
                node.text = element.format(item)
            except ValueError as err:
                # lxml refuses control characters and NULs
                raise ValidationError(f"{item_path}: {err}", error_code = 'INVALID_CHARACTERS', field = item_path) from err
            except TypeError as err:
                raise ValidationError(f"{item_path} must be text: {err}", error_code = 'INVALID_VALUE', field = item_path) from err
            continue

        if not isinstance(item, dict):
            raise ValidationError(
                f"{item_path} must be a mapping of {', '.join(c.name for c in element.children)}",
                error_code = 'INVALID_STRUCTURE',
                field = item_path,
            )
        for child in element.children:
            render(node, child, item.get(child.name), item_path)
