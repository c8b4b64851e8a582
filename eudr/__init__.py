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

from .exceptions import *
from .response import SOAPResponse, SOAPFault
from .security import SecurityContext, UsernameDigestToken
from .config import ServiceConfig
from .geojson import RawGeoJSON, PlainGeoJSON, EncodedGeoJSON
from .echo_client import EchoClient
from .retrieval_client import RetrievalClient, RetrievalClientV2
from .submission_client import SubmissionClient, SubmissionClientV2

logging.getLogger(__name__).addHandler(logging.NullHandler())

__license__ = """
Copyright (C) 2022-present
Kevin Crouse, The Philadelphia District Attorney's Office, City of Philadelphia, PA.

This program is free software; you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation; either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program. If not, see <https://www.gnu.org/licenses/gpl-3.0.en.html>
"""
