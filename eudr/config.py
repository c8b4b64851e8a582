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
import math
import os

from .exceptions import ConfigurationError

BASE_URLS = {
    'eudr-repository': 'https://eudr.webcloud.ec.europa.eu',
    'eudr-test': 'https://acceptance.eudr.webcloud.ec.europa.eu',
}

# endpoint shorthand, as accepted by `endpoint`
ENDPOINT_ALIASES = {
    'production': 'eudr-repository',
    'acceptance': 'eudr-test',
}

SERVICE_PATHS = {
    'echo': {'v1': '/EudrEchoService', 'v2': '/EudrEchoService'},
    'retrieval': {'v1': '/EUDRRetrievalServiceV1', 'v2': '/EUDRRetrievalServiceV2'},
    'submission': {'v1': '/EUDRSubmissionServiceV1', 'v2': '/EUDRSubmissionServiceV2'},
}

DEFAULT_TIMESTAMP_VALIDITY = 60
DEFAULT_TIMEOUT = 10000


def supported_client_ids():
    """ Client ids for which the endpoint can be derived. """
    return(list(BASE_URLS))


def supported_services():
    return(list(SERVICE_PATHS))


def supported_versions(service):
    if service not in SERVICE_PATHS:
        raise ConfigurationError(f"Unknown service '{service}'; expected one of {', '.join(SERVICE_PATHS)}")
    return(list(SERVICE_PATHS[service]))


def derive_endpoint(client_id, service, version):
    """ The standard endpoint for a service, e.g. `https://acceptance.eudr.webcloud.ec.europa.eu/tracesnt/ws/EUDRSubmissionServiceV2`.

    Raises:
        ConfigurationError: if the client id is not one of the standard ones, or the service/version is unknown
    """
    if client_id not in BASE_URLS:
        raise ConfigurationError(
            f"Cannot derive an endpoint for client id '{client_id}'; provide the endpoint explicitly "
            f"or use one of {', '.join(BASE_URLS)}",
            field = 'endpoint',
        )
    if version not in supported_versions(service):
        raise ConfigurationError(f"Unknown version '{version}' for service '{service}'")
    return(f"{BASE_URLS[client_id]}/tracesnt/ws{SERVICE_PATHS[service][version]}")


def load_config(config = None):
    """ Resolve the `config` argument into a dict.

    It may be a dict of configuration parameters or a string pointing to either a json
    file with the custom config or a folder with a `settings.json` file. If not provided,
    a `settings.json` file in the runtime directory will be used, if it exists.
    """
    if not config:
        if os.path.exists('settings.json'):
            with open('settings.json') as fh:
                return(json.load(fh))
        return({})

    if type(config) is dict:
        return(config)

    if os.path.isdir(config):
        config = os.path.join(config, 'settings.json')
    try:
        with open(config) as fh:
            return(json.load(fh))
    except (OSError, ValueError) as err:
        raise ConfigurationError(f"Could not read configuration from {config}: {err}") from err


class ServiceConfig():
    """ The settings for one client: where to send requests and how to sign them.

    Each setting is taken from the constructor argument, or else from the config
    source (see `load_config`), or else from its default. Once built the settings
    can't be changed; create a new client to use different ones.

    Args:
        service: 'echo', 'retrieval' or 'submission'
        version: 'v1' or 'v2'
        config: dict, json file or folder holding settings.json
        username: The TRACES username. Config key 'username'.
        password: The webservice authentication key. Config key 'password'.
        client_id: The web service client id, 'eudr-test' or 'eudr-repository' for the standard environments. Config key 'client-id'.
        endpoint: Full service URL, or 'production' / 'acceptance'. If not given, derived from the client id. Config key 'endpoint'.
        timestamp_validity: Seconds before the security timestamp expires, default 60. Config key 'timestamp-validity'.
        timeout: Request timeout in milliseconds, greater than zero, default 10000. Config key 'timeout'.
        server_certificate: True to verify TLS against the system CA bundle (the default), a path to a CA bundle, or False to skip verification. Config key 'server-certificate'.
    Raises:
        ConfigurationError: for missing or invalid settings
    """

    def __init__(
        self,
        service:str,
        version:str = 'v1',
        config = None,
        username:str = None,
        password:str = None,
        client_id:str = None,
        endpoint:str = None,
        timestamp_validity:int = None,
        timeout:int = None,
        server_certificate = None,
    ):
        settings = load_config(config)

        def pick(value, *keys, default = None):
            if value is not None:
                return(value)
            for key in keys:
                if key in settings and settings[key] is not None:
                    return(settings[key])
            return(default)

        self._service = service
        self._version = version
        self._username = pick(username, 'username')
        self._password = pick(password, 'password')
        self._client_id = pick(client_id, 'client-id', 'webServiceClientId', 'web-service-client-id')

        for name in ('username', 'password', 'client_id'):
            if not getattr(self, '_' + name):
                raise ConfigurationError(f"Missing required configuration: {name}", field = name)

        self._timestamp_validity = self._number(
            'timestamp_validity', pick(timestamp_validity, 'timestamp-validity', 'timestampValidity', default = DEFAULT_TIMESTAMP_VALIDITY)
        )
        self._timeout = self._number('timeout', pick(timeout, 'timeout', default = DEFAULT_TIMEOUT), positive = True)
        self._server_certificate = pick(server_certificate, 'server-certificate', default = True)

        endpoint = pick(endpoint, 'endpoint')
        if endpoint in ENDPOINT_ALIASES:
            endpoint = derive_endpoint(ENDPOINT_ALIASES[endpoint], service, version)
        elif not endpoint:
            endpoint = derive_endpoint(self._client_id, service, version)
        self._endpoint = endpoint

    @staticmethod
    def _number(name, value, positive = False):
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be a number, not {value!r}", field = name) from None
        if not math.isfinite(number) or number < 0:
            raise ConfigurationError(f"{name} must be a finite, non-negative number", field = name)
        if positive and number == 0:
            raise ConfigurationError(f"{name} must be greater than zero", field = name)
        return(int(number) if number == int(number) else number)

    @property
    def service(self):
        return(self._service)

    @property
    def version(self):
        return(self._version)

    @property
    def endpoint(self):
        """ The full URL requests are posted to. """
        return(self._endpoint)

    @property
    def username(self):
        return(self._username)

    @property
    def password(self):
        return(self._password)

    @property
    def client_id(self):
        """ Sent as the WebServiceClientId header. """
        return(self._client_id)

    @property
    def timestamp_validity(self):
        """ Seconds between the Created and Expires of the security timestamp. """
        return(self._timestamp_validity)

    @property
    def timeout(self):
        """ Request timeout in milliseconds. """
        return(self._timeout)

    @property
    def server_certificate(self):
        """ Passed to `requests` as `verify`. """
        return(self._server_certificate)

    def __repr__(self):
        return(f"ServiceConfig(service={self.service}, version={self.version}, endpoint={self.endpoint}, username={self.username}, client_id={self.client_id})")
