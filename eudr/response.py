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
import re
from collections import OrderedDict
from xml.parsers.expat import ExpatError

import lxml.etree
import xmltodict

from .exceptions import ProtocolError

regex = re.compile(r'^[^:]+:')
xmlnsre = re.compile(r'^\@xmlns(:[\w\-]+)?$')

# never fetch DTDs or expand entities from a server response
parser = lxml.etree.XMLParser(resolve_entities = False, no_network = True)

# Fields the EUDR schemas declare as repeatable. A dotted name only applies
# beneath the given parent; associatedStatements also have a referenceNumber,
# and that one is a single value.
REPEATABLE_FIELDS = frozenset((
    'commodities',
    'producers',
    'speciesInfo',
    'associatedStatements',
    'operator.referenceNumber',
))

# retrieval returns the associated statements under a different name than submission takes
FIELD_RENAMES = {
    'associateStatement': 'associatedStatements',
}


def local_name(key):
    """ `ns3:Body`, `{http://...}Body` and `Body` all become `Body`. """
    if key.startswith('{'):
        key = key.split('}', 1)[1]
    return(key.rsplit(':', 1)[-1])


def as_list(value):
    """ Coerce a single occurrence (or nothing) into a list. """
    if value is None:
        return([])
    if type(value) is list:
        return(value)
    if type(value) is tuple:
        return(list(value))
    return([value])


def strip_namespaces(struct):
    """ Recursively remove namespace prefixes from the keys of a parsed tree, dropping xmlns declarations. """
    if type(struct) in (dict, OrderedDict):
        newdata = {}
        for k,v in struct.items():
            if xmlnsre.fullmatch(k):
                # skip xml namespace keys
                continue
            newdata[re.sub(regex, '', k)] = strip_namespaces(v)
        # a leaf that only carried an xmlns declaration is just its text
        if list(newdata) == ['#text']:
            return(newdata['#text'])
        return(newdata)
    elif type(struct) in (tuple, list):
        return([strip_namespaces(var) for var in struct])
    else:
        return(struct)


def normalize_arrays(node, repeatable = REPEATABLE_FIELDS, parent = None):
    """ Make every repeatable field a list, however many times it occurred.

    xmltodict collapses a single occurrence into a bare dict, so a statement
    with one producer would otherwise look different from one with two. This
    recurses through the whole tree and is idempotent. Fields in `FIELD_RENAMES`
    are given the name submission uses.

    Args:
        node: A namespace-stripped tree
        repeatable: Field names to coerce. A name like `operator.referenceNumber` only matches beneath `operator`.
        parent: Used internally for the dotted names
    Returns:
        A new tree; the input is not modified.
    """
    if isinstance(node, dict):
        result = {}
        for key, value in node.items():
            key = FIELD_RENAMES.get(key, key)
            if key in repeatable or (parent and f"{parent}.{key}" in repeatable):
                value = as_list(value)
            result[key] = normalize_arrays(value, repeatable, key)
        return(result)
    elif isinstance(node, (list, tuple)):
        return([normalize_arrays(item, repeatable, parent) for item in node])
    return(node)


def parse(xml_text):
    """ Parse response text into a tree of dicts, with the namespace prefixes left as the server sent them.

    Raises:
        ProtocolError: if the text is not well-formed XML
    """
    if type(xml_text) is str:
        xml_text = xml_text.encode('utf-8')
    try:
        return(xmltodict.parse(xml_text))
    except ExpatError as err:
        raise ProtocolError(f"Response is not well-formed XML: {err}", error_code = 'XML_PARSE_ERROR') from err


def envelope_body(tree):
    """ Return the contents of the SOAP Body, whatever prefix the server used for it.

    Raises:
        ProtocolError: if there is no Envelope or no Body
    """
    if not isinstance(tree, dict) or not tree:
        raise ProtocolError("Response has no root element", error_code = 'XML_STRUCTURE_ERROR')

    root_key = next(iter(tree))
    if local_name(root_key) != 'Envelope':
        raise ProtocolError(f"Expected a SOAP Envelope, got {root_key}", error_code = 'XML_STRUCTURE_ERROR')

    envelope = tree[root_key] or {}
    if not isinstance(envelope, dict):
        raise ProtocolError("SOAP Envelope has no Body", error_code = 'XML_STRUCTURE_ERROR')

    for key, value in envelope.items():
        if local_name(key) == 'Body':
            if value is None:
                return({})
            if not isinstance(value, dict):
                raise ProtocolError(
                    f"SOAP Body holds text instead of an element: {str(value)[:100]}",
                    error_code = 'XML_STRUCTURE_ERROR',
                )
            return(value)

    raise ProtocolError("SOAP Envelope has no Body", error_code = 'XML_STRUCTURE_ERROR')


def extract_operation_result(tree, operation_name):
    """ Find the result of an operation in a parsed response.

    Args:
        tree: Output of `parse()`
        operation_name: e.g. `GetStatementInfo`; the `Response` suffix is optional
    Returns:
        The namespace-stripped contents of `<operation_name>Response` (an empty dict if the
        element is empty), a `SOAPFault` if the body holds a Fault instead, or None if neither is present.
    """
    target = operation_name if operation_name.endswith('Response') else operation_name + 'Response'
    body = envelope_body(tree)

    for key, value in body.items():
        if local_name(key) == target:
            if value is None:
                return({})
            return(strip_namespaces(value))

    for key, value in body.items():
        if local_name(key) == 'Fault':
            return(SOAPFault.from_tree(value))

    return(None)


def _text(value):
    # elements with attributes come back as {'@attr': ..., '#text': ...}
    if isinstance(value, dict):
        return(value.get('#text'))
    return(value)


class SOAPFault():
    """ A SOAP 1.1 Fault: faultcode, faultstring, and the detail tree with prefixes stripped. """

    def __init__(self, faultcode = None, faultstring = None, detail = None):
        self.faultcode = faultcode
        self.faultstring = faultstring
        self.detail = detail

    @classmethod
    def from_tree(cls, node):
        node = strip_namespaces(node or {})
        return(cls(
            faultcode = _text(node.get('faultcode')),
            faultstring = _text(node.get('faultstring')),
            detail = node.get('detail'),
        ))

    @property
    def errors(self):
        """ list: Every `Error` entry in the detail, as dicts with `ID`, `Message` and, sometimes, `Field`. """
        found = []

        def recurse(node):
            if isinstance(node, dict):
                for key, value in node.items():
                    if key == 'Error':
                        for entry in as_list(value):
                            if isinstance(entry, dict):
                                found.append({k: _text(v) for k, v in entry.items() if not k.startswith('@')})
                    else:
                        recurse(value)
            elif isinstance(node, list):
                for item in node:
                    recurse(item)

        recurse(self.detail)
        return(found)

    def __repr__(self):
        return(f"SOAPFault(faultcode={self.faultcode!r}, faultstring={self.faultstring!r})")


class SOAPResponse():
    """ A class to encapsulate and simplify EUDR responses.

    Constructor Args:
        http_response: A response with SOAP xml content that follows the interface for a requests.post response. Optional if xml is provided instead.
        xml: An lxml.etree object, or a string, to set as the underlying data. Allowed only as an alternative to http_response
        allow_failure: If True, process a response that is not "ok." By default, the classified error is raised for a non-good response.
        **kwargs: Any additional parameters will be added as accessors on the object, allowing the clients to attach operation results without subclassing.

    Printing the response object or including it in string form will pretty-print the XML.
    `data` returns the body in python dictionary format with namespace prefixes removed,
    `result()` picks out a single operation's response.
    """
    def __init__(self, http_response = None, xml = None, allow_failure = False, **extra_params):

        self.http_response = http_response
        if http_response is None:
            if xml is None:
                raise ValueError("Neither an http_response nor an xml object provided")
            if type(xml) in (str, bytes):
                self.xml = xml
            else:
                self._xml = xml
        else:
            if not http_response.ok and not allow_failure:
                from .exceptions import error_factory
                raise error_factory(http_response)

            self.xml = http_response.content

        self._tree = None
        self._data = None
        if extra_params:
            self._add_properties(**extra_params)

    def _add_properties(self, **kwargs):
        """ Adds additional properties for the response.

        This allows quick customization of the response by the client class when
        there are details to provide beyond the xml fields.
        """
        for k,v in kwargs.items():
            setattr(self, k, v)

    @property
    def xml(self):
        """Return the lxml etree representing the complete xml.

        The setter can take either a regular string or a binary string, which will be processed into an lxml.etree"""
        return(self._xml)

    @xml.setter
    def xml(self, xml_string):
        if type(xml_string) is str:
            xml_string = xml_string.encode('utf-8')
        try:
            self._xml = lxml.etree.fromstring(xml_string, parser)
        except lxml.etree.XMLSyntaxError as err:
            raise ProtocolError(
                f"Response is not well-formed XML: {err}",
                error_code = 'XML_PARSE_ERROR',
                http_response = self.http_response,
            ) from err

    @property
    def xml_string(self):
        """ Returns a string representing the XML. Note that this is minified and suitable for writing to a file.  For a pretty representation, use the object in string form."""
        return(lxml.etree.tostring(self.xml))

    @property
    def status_code(self):
        """ The http status of the response, if there was one. """
        if self.http_response is None:
            return(None)
        return(self.http_response.status_code)

    @property
    def tree(self):
        """ The whole document as parsed by xmltodict, prefixes intact. """
        if self._tree is None:
            self._tree = parse(self.xml_string)
        return(self._tree)

    @property
    def data(self):
        """ Reduce the XML body to a pythonic data structure.

        This function converts the xml into a dict and then strips out all of the XML
        namespaces to give a data structure that is more accessible to the average user.

        Because this can be a comparatively time consuming process, it is done lazily
        on first access and the result is saved for future accesses.
        """
        if self._data is None:
            self._data = strip_namespaces(envelope_body(self.tree))
        return(self._data)

    @property
    def fault(self):
        """ The SOAPFault in the body, or None. """
        for key, value in envelope_body(self.tree).items():
            if local_name(key) == 'Fault':
                return(SOAPFault.from_tree(value))
        return(None)

    def result(self, operation_name, repeatable = None):
        """ The body of the operation's response element, optionally with repeatable fields made into lists.

        See `extract_operation_result` for the return values.
        """
        result = extract_operation_result(self.tree, operation_name)
        if repeatable and isinstance(result, dict):
            result = normalize_arrays(result, repeatable)
        return(result)

    @property
    def data_string(self):
        """ Returns a string representing the response data. """
        return(json.dumps(self.data, sort_keys = True, indent = 4))

    def print_data(self):
        """ Print the response data to the screen. Shorthand for print(obj.data_string)"""
        print(self.data_string)

    def __str__(self):
        """Return a pretty string of the xml for printing or output."""
        return(lxml.etree.tostring(self.xml, pretty_print = True).decode('utf-8'))
