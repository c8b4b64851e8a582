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

import base64
import json
import logging
import warnings

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

GEO_INVALID = 'EUDR_COMMODITIES_PRODUCER_GEO_INVALID'


def _b64(text):
    return(base64.b64encode(text.encode('utf-8')).decode('ascii'))


class GeoJSON():
    """ A producer geolocation, tagged with the form the caller is supplying it in.

    The service wants base64 of the GeoJSON text. Wrap the value in one of the
    subclasses to say which form it is already in:

        RawGeoJSON({'type': 'FeatureCollection', ...})   # a python structure
        PlainGeoJSON('{"type": "FeatureCollection", ...}')   # JSON text
        EncodedGeoJSON('eyJ0eXBlIjoi...')   # already base64
    """

    def __init__(self, value):
        self.value = value

    def encode(self):
        raise NotImplementedError

    def __repr__(self):
        return(f"{type(self).__name__}({self.value!r})")


class RawGeoJSON(GeoJSON):

    def encode(self):
        try:
            text = json.dumps(self.value, separators = (',', ':'))
        except (TypeError, ValueError) as err:
            raise ValidationError(f"GeoJSON could not be serialized: {err}", error_code = GEO_INVALID, field = 'geometryGeojson') from err
        return(_b64(text))


class PlainGeoJSON(GeoJSON):

    def encode(self):
        try:
            parsed = json.loads(self.value)
        except ValueError as err:
            raise ValidationError(f"GeoJSON is not valid JSON: {err}", error_code = GEO_INVALID, field = 'geometryGeojson') from err
        return(RawGeoJSON(parsed).encode())


class EncodedGeoJSON(GeoJSON):

    def encode(self):
        return(self.value)


def encode_geojson(value):
    """ Return the base64 form of a producer geometry.

    Tagged values are encoded as tagged. For an untagged string, a value that
    base64-decodes to JSON is taken as already encoded, a JSON string is encoded,
    and anything else is sent unchanged with a warning. Untagged dicts and lists
    are serialized and encoded; any other type is sent as its text, with a warning.
    """
    if isinstance(value, GeoJSON):
        return(value.encode())

    if type(value) in (dict, list):
        return(RawGeoJSON(value).encode())

    if type(value) is str:
        try:
            json.loads(base64.b64decode(value, validate = True).decode('utf-8'))
            return(value)
        except ValueError:
            pass

        try:
            json.loads(value)
        except ValueError:
            message = "geometryGeojson is neither base64-encoded GeoJSON nor JSON; sending it unchanged"
            logger.warning(message)
            warnings.warn(message)
            return(value)
        return(_b64(value))

    message = f"geometryGeojson of type {type(value).__name__} is not GeoJSON; sending it as text"
    logger.warning(message)
    warnings.warn(message)
    return(str(value))


def decode_geojson(value):
    """ Decode a base64 geometry from a retrieved statement into a python structure.

    Returns the value untouched, with a warning, if it does not decode.
    """
    if type(value) is not str:
        return(value)
    try:
        return(json.loads(base64.b64decode(value).decode('utf-8')))
    except ValueError as err:
        warnings.warn(f"Could not decode geometryGeojson: {err}")
        return(value)
