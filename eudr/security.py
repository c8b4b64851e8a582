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
import datetime
import hashlib
import secrets
import uuid

import lxml.etree
import zeep.ns
import zeep.wsse
import zeep.wsse.utils

PASSWORD_DIGEST_TYPE = 'http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-username-token-profile-1.0#PasswordDigest'
BASE64_ENCODING_TYPE = 'http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-soap-message-security-1.0#Base64Binary'
ID_ATTR = lxml.etree.QName(zeep.ns.WSU, 'Id')

NONCE_SIZE = 16
DEFAULT_VALIDITY = 60


def format_timestamp(moment):
    """ ISO-8601 in UTC with millisecond precision, e.g. `2024-01-01T09:30:00.123Z`. """
    moment = moment.astimezone(datetime.timezone.utc)
    return(moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z")


def password_digest(nonce:bytes, created:str, password:str) -> str:
    """ base64(SHA1(nonce + created + password)), per the WSS UsernameToken Profile 1.0. """
    sha = hashlib.sha1()
    sha.update(nonce)
    sha.update(created.encode('utf-8'))
    sha.update(password.encode('utf-8'))
    return(base64.b64encode(sha.digest()).decode('ascii'))


class SecurityContext():
    """ The one-shot material for a single request's security header.

    Build these with `generate()`. A context is meant for exactly one envelope;
    the server rejects a nonce it has seen before.
    """

    def __init__(self, nonce:bytes, created:datetime.datetime, expires:datetime.datetime, digest:str, timestamp_id:str, token_id:str):
        self.nonce = nonce
        self.created = created
        self.expires = expires
        self.digest = digest
        self.timestamp_id = timestamp_id
        self.token_id = token_id

    @property
    def nonce_b64(self):
        return(base64.b64encode(self.nonce).decode('ascii'))

    @property
    def created_string(self):
        return(format_timestamp(self.created))

    @property
    def expires_string(self):
        return(format_timestamp(self.expires))

    def __repr__(self):
        # never show the digest or nonce
        return(f"SecurityContext(created={self.created_string}, expires={self.expires_string}, timestamp_id={self.timestamp_id})")


def generate(password:str, validity:int = DEFAULT_VALIDITY, created:datetime.datetime = None, nonce:bytes = None) -> SecurityContext:
    """ Create the security material for one request.

    Args:
        password: The webservice authentication key
        validity: Seconds until the timestamp expires. Default is 60.
        created: Override the creation time; only for testing.
        nonce: Override the random nonce; only for testing.
    Returns:
        A new SecurityContext
    """
    if nonce is None:
        nonce = secrets.token_bytes(NONCE_SIZE)
    if created is None:
        created = datetime.datetime.now(datetime.timezone.utc)

    # the digest covers the string that goes on the wire, so truncate to what is sent
    created = created.replace(microsecond = (created.microsecond // 1000) * 1000)
    expires = created + datetime.timedelta(seconds = validity)

    return(SecurityContext(
        nonce = nonce,
        created = created,
        expires = expires,
        digest = password_digest(nonce, format_timestamp(created), password),
        timestamp_id = f"TS-{uuid.uuid4()}",
        token_id = f"UsernameToken-{uuid.uuid4()}",
    ))


class UsernameDigestToken(zeep.wsse.UsernameToken):
    """ WS-Security UsernameToken with a password digest and a Timestamp, as EUDR expects.

    zeep's own UsernameToken writes second-precision timestamps and no Timestamp
    element, which the EUDR services reject, so `apply` builds the header from a
    pre-generated SecurityContext instead.
    """

    def __init__(self, username, security_context:SecurityContext):
        super().__init__(username, use_digest = True)
        self.security_context = security_context

    def apply(self, envelope, headers):
        """ Add the wsse:Security header (Timestamp, then UsernameToken) to the envelope. """
        context = self.security_context
        WSU = zeep.wsse.utils.WSU
        WSSE = zeep.wsse.utils.WSSE

        security = zeep.wsse.utils.get_security_header(envelope)
        soap_env = lxml.etree.QName(envelope).namespace
        security.set(lxml.etree.QName(soap_env, 'mustUnderstand'), '1')

        timestamp = WSU.Timestamp(
            WSU.Created(context.created_string),
            WSU.Expires(context.expires_string),
        )
        timestamp.set(ID_ATTR, context.timestamp_id)
        security.append(timestamp)

        token = WSSE.UsernameToken(
            WSSE.Username(self.username),
            WSSE.Password(context.digest, Type = PASSWORD_DIGEST_TYPE),
            WSSE.Nonce(context.nonce_b64, EncodingType = BASE64_ENCODING_TYPE),
            WSU.Created(context.created_string),
        )
        token.set(ID_ATTR, context.token_id)
        security.append(token)

        return(envelope, headers)
