# hackernews-graphql -- <project>/context.py
#
# Copyright © 2026 The hackernews-graphql authors.
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE
# LIABLE FOR ANY CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION
# OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION
# WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

from django.utils.datastructures import CaseInsensitiveMapping

from hackernews.errors import MissingToken, NotAuthenticated
from hackernews.events import get_event_channel
from hackernews.store import DataAccess
from users.auth import IdentityResolver
from users.tokens import TokenService


class RequestContext(object):
    """What every resolver gets as ``info.context``: who is calling, the data access facade, the
    event channel, and the token service used to sign new credentials.

    A bad or empty Authorization header does not fail the request. The error is kept and raised by
    require_user_id(), so it only stops operations that need to know who the caller is.
    """

    def __init__(self, identity=None, data=None, events=None, tokens=None, identity_error=None,
                 request=None):
        self.identity = identity
        self.identity_error = identity_error
        self.data = data if data is not None else DataAccess()
        self.events = events if events is not None else get_event_channel()
        self.tokens = tokens if tokens is not None else TokenService.from_settings()
        self.request = request

    @classmethod
    def from_headers(cls, headers, data=None, events=None, tokens=None, request=None):
        tokens = tokens if tokens is not None else TokenService.from_settings()
        identity = None
        identity_error = None
        try:
            identity = IdentityResolver(tokens).resolve(headers)
        except (MissingToken, NotAuthenticated) as exc:
            identity_error = exc
        return cls(identity=identity, data=data, events=events, tokens=tokens,
                   identity_error=identity_error, request=request)

    @classmethod
    def from_request(cls, request, **kwargs):
        return cls.from_headers(request.headers, request=request, **kwargs)

    @classmethod
    def from_scope(cls, scope, **kwargs):
        """Build a context from an ASGI scope's raw handshake headers."""
        headers = CaseInsensitiveMapping({
            name.decode('latin1'): value.decode('latin1')
            for name, value in scope.get('headers', [])
        })
        return cls.from_headers(headers, **kwargs)

    def require_user_id(self):
        if self.identity_error is not None:
            raise self.identity_error
        if self.identity is None:
            raise NotAuthenticated()
        return self.identity
