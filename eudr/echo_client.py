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

from .client import Client


class EchoClient(Client):
    """ The EUDR echo service, for checking connectivity and credentials. """

    service = 'echo'

    def echo(self, message:str = "hello", send_request = True):
        """ Send a message to the echo service.

        Args:
            message: The text to echo
            send_request: If True, sends the request and returns the SOAPResponse. If False, returns the generated lxml.etree for the request only.
        Returns:
            SOAPResponse, with the echoed text as the `status` property.
        """
        result = self.call('echo', {'query': message}, send_request = send_request)
        if not send_request:
            return(result)

        result._add_properties(status = result.result_data.get('status'))
        return(result)
