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
import sys

import lxml.etree
import requests

from . import security
from .config import ServiceConfig
from .envelope import build_envelope_node
from .exceptions import error_factory, ProtocolError
from .response import SOAPResponse, SOAPFault
from .schema import get_operation

logger = logging.getLogger(__name__)


class Client():
    """
    Baseclass for communicating with the EUDR services.

    Each request is built from scratch: a new security context (nonce, timestamps,
    password digest) is generated for every call, and nothing is kept between
    calls, so a single client may be shared between threads.

    Class Properties:
        service: Must be defined in each subclass: 'echo', 'retrieval' or 'submission'. Selects the operation descriptors and, with `version`, the derived endpoint.
        version: 'v1' or 'v2'.
    """

    service = None
    version = 'v1'

    def __init__(
        self,
        config = None,
        username:str = None,
        password:str = None,
        client_id:str = None,
        endpoint:str = None,
        timestamp_validity:int = None,
        timeout:int = None,
        server_certificate = None,
        session = None,
        verbose:bool = False,
    ):
        """
        Args:
            config: A dict, a json file, or a folder containing `settings.json`. See `ServiceConfig`.
            username, password, client_id, endpoint, timestamp_validity, timeout, server_certificate: Overrides for the config values - see `ServiceConfig` for details.
            session: Object with a `requests`-compatible `post()`, e.g. a `requests.Session`. Defaults to the `requests` module itself.
            verbose: If True, prints the request and response envelopes so you can trace the messages built and received. Default is False.
        Raises:
            ConfigurationError: if required settings are missing
        """
        if not self.service:
            raise NotImplementedError("service must be defined in the subclass")

        self.config = ServiceConfig(
            self.service,
            self.version,
            config = config,
            username = username,
            password = password,
            client_id = client_id,
            endpoint = endpoint,
            timestamp_validity = timestamp_validity,
            timeout = timeout,
            server_certificate = server_certificate,
        )
        self.session = session
        self.verbose = verbose

    @property
    def endpoint(self):
        return(self.config.endpoint)

    def operation(self, name):
        """ The OperationDescriptor for one of this client's operations. """
        return(get_operation(self.service, self.version, name))

    def build_request(self, operation_name, payload):
        """ Build the envelope for an operation with a freshly generated security context. """
        descriptor = self.operation(operation_name)
        context = security.generate(self.config.password, self.config.timestamp_validity)
        return(build_envelope_node(descriptor, context, self.config, payload))

    def make_request(self, operation_name, node):
        """ Sends the request envelope to the endpoint.

        Primarily intended to be an internal function at the end of subclass-specific functions.

        Returns:
            The SOAPResponse for a successful (2xx) response.
        Raises:
            EUDRError: the classified error for anything else, including network failures.
        """
        descriptor = self.operation(operation_name)

        if self.verbose:
            print("---- REQUEST ----")
            print(lxml.etree.tostring(node, pretty_print = True).decode('utf-8'))

        headers = {
            'Content-Type': 'text/xml;charset=UTF-8',
            'SOAPAction': descriptor.soap_action,
        }
        transport = self.session or requests

        logger.debug("Sending %s to %s", operation_name, self.endpoint)
        try:
            response = transport.post(
                self.endpoint,
                headers = headers,
                data = lxml.etree.tostring(node, xml_declaration = True, encoding = 'UTF-8'),
                timeout = self.config.timeout / 1000,
                verify = self.config.server_certificate,
            )
        except requests.exceptions.RequestException as err:
            if isinstance(err, requests.exceptions.SSLError) and "unable to get local issuer" in f"{err}":
                # it's easy to forget that requests expects the whole chain in a custom CA bundle
                logger.error("Server certificate verification failed. If you specified a CA bundle for the endpoint, make sure it includes the full certificate chain.")
            raise error_factory(exception = err) from err

        logger.debug("%s answered with HTTP %s", operation_name, response.status_code)

        if not response.ok:
            error = error_factory(response)
            logger.debug("%s failed: %r", operation_name, error)
            if self.verbose:
                print(f"\n\n---- Response ({response.status_code}) ----\n{response.text}", file = sys.stderr)
            raise error

        obj = SOAPResponse(response)
        if self.verbose:
            print(f"\n\n---- Response ----\n{obj}")

        return(obj)

    def call(self, operation_name, payload, send_request = True, expect_result = True):
        """ Build, send and unpack one operation.

        Args:
            operation_name: The operation, e.g. `getDdsInfo`
            payload: The request body; see `envelope.build_envelope_node`
            send_request: If False, return the lxml envelope without sending it.
            expect_result: If False, a response without the operation's response element is accepted.
        Returns:
            The SOAPResponse, with the array-normalized operation result set as `.result_data`.
        """
        node = self.build_request(operation_name, payload)
        if not send_request:
            return(node)

        obj = self.make_request(operation_name, node)
        descriptor = self.operation(operation_name)
        result = obj.result(descriptor.response_name, descriptor.repeatable)

        if isinstance(result, SOAPFault):
            # a fault with a success status should not happen, but classify it all the same
            raise error_factory(obj.http_response)
        if result is None:
            if expect_result:
                raise ProtocolError(
                    f"Response does not contain {descriptor.response_name}",
                    error_code = 'UNEXPECTED_RESPONSE',
                    http_response = obj.http_response,
                    soap_response = obj,
                )
            result = {}
        elif not isinstance(result, dict):
            raise ProtocolError(
                f"{descriptor.response_name} holds text instead of elements",
                error_code = 'UNEXPECTED_RESPONSE',
                http_response = obj.http_response,
                soap_response = obj,
            )

        obj._add_properties(result_data = result)
        return(obj)
